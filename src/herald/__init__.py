"""Herald - scheduled message delivery for coaching platforms."""

__version__ = "0.1.0"
