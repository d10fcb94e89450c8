# utils/__init__.py
"""General utility functions for the story engine."""

from .logging import setup_logging

__all__ = ["setup_logging"]
