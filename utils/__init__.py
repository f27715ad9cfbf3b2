# utils/__init__.py
"""General utilities for the document generation core."""

from .logging import setup_logging

__all__ = ["setup_logging"]
