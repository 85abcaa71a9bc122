"""
Router package initialization.
"""

from . import verification

__all__ = ["verification"]
