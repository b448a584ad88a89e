"""Ref codec and dependency resolution."""
