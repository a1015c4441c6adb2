"""Align a recorded talk with the slide decks shown in it."""

__version__ = "0.1.0"
