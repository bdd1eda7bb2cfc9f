"""Iterative multi-source search with attributed citations."""

__version__ = "0.1.0"
