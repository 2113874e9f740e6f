"""Markdown blog site generator."""

__version__ = "0.3.0"
