"""Building blocks for matching JSON events against JSON patterns."""

__version__ = "0.1.0"