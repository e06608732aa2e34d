"""Glossa - multilingual gloss graph with situation challenges."""

__version__ = "0.1.0"
