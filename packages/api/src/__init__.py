# This project was developed with assistance from AI tools.
"""Tasheel order lifecycle API."""

__version__ = "0.1.0"
