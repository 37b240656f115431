"""
Store — MongoDB collection holding the synced records.
"""

from .mongo import MongoStore

__all__ = ["MongoStore"]
