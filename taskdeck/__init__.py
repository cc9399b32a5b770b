"""taskdeck: recurring task backend."""

__version__ = "1.0.0"
