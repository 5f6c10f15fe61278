"""Command-line interface for the file cache."""
