"""Git repository cache, worktrees and checkout."""
