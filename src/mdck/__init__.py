"""mdck - report markdown links to local files that do not exist."""

__version__ = "0.3.0"
