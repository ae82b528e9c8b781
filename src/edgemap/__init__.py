"""Localized sitemap generation for edge workers."""

__version__ = "0.3.0"
