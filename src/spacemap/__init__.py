"""spacemap - disk usage scanner and squarified treemap explorer."""

__version__ = "0.1.0"
