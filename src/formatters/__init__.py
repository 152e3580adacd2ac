"""Formatters for journal site and vault output."""

from sessionpress.formatters.obsidian import ObsidianFormatter
from sessionpress.formatters.site import SiteFormatter
from sessionpress.formatters.templates import format_size
from sessionpress.formatters.wikilink import convert_markdown_links, format_wikilink

__all__ = [
    "ObsidianFormatter",
    "SiteFormatter",
    "convert_markdown_links",
    "format_size",
    "format_wikilink",
]
