"""
Mirror — Local git working copy of the resource repository.
"""

from .repository import RepositoryMirror

__all__ = ["RepositoryMirror"]
