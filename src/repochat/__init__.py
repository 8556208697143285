"""Keyword retrieval and chat over GitHub repository documentation."""

__version__ = "0.1.0"
