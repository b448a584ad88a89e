"""Materialize git and local-path dependencies from a declarative manifest."""

__version__ = "0.3.0"
