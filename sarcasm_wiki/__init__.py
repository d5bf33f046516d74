"""Sarcasm Wiki: on-demand satirical rewrites of encyclopedia articles."""

__version__ = "0.1.0"
