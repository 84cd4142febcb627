"""Asynchronous AI test generation service."""

__version__ = "1.0.0"
