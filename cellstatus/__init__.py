"""CellStatus value stream and SPC metrics service."""

__version__ = "0.1.0"
