"""Rebuild sector recovery parameters from Filecoin chain state."""

__version__ = "0.1.0"
