"""Incremental build uploads for Raccreative Games."""

__version__ = "0.3.0"
