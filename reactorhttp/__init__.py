"""Static-file HTTP servers built on reactor event loops, with their building blocks."""

__version__ = "0.1.0"