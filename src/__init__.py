"""Sessionpress: publish exported AI session journals as a site or Obsidian vault."""

__version__ = "0.1.0"
