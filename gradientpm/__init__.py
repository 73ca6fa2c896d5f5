"""A package manager for .apkg archives with SQLite bookkeeping and repository-based dependency resolution."""

__version__ = "2.0.0"