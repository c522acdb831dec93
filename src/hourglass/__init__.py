"""Personal time tracking with SQLite or CSV storage."""

__version__ = "0.3.0"
