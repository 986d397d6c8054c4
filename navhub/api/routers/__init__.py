"""
API route handlers.
"""

from . import sync

__all__ = ["sync"]
