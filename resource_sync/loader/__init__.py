"""
Loader — Extract records from the mirror's data files.
"""

from .records import load_all

__all__ = ["load_all"]
