"""Publish flagged Markdown notes to a Hugo site hosted on GitHub."""

__version__ = "1.0.0"
