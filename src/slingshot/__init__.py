"""Slingshot — multiple gravity-assist trajectory search."""

__version__ = "0.1.0"
