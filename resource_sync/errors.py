"""
Sync Errors — Failure taxonomy for the sync loop.

Every error raised during a monitor tick derives from SyncError and is
recoverable at the tick level: the monitor routes it to the failure
notifier and waits for the next tick. The same errors raised during the
startup cycle are fatal.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class SyncError(Exception):
    """Base class for all sync failures."""

    def __init__(self, message: str, reference: Optional[str] = None):
        super().__init__(message)
        self.reference = reference


class ConfigError(SyncError):
    """Required configuration is missing or invalid."""


class MirrorInitError(SyncError):
    """The local mirror could not be (re)created by cloning the remote."""


class NoCommitsError(SyncError):
    """The mirror has no branch resolving to a commit."""


class FetchError(SyncError):
    """Fetching from the remote or reading its HEAD failed."""


class PullError(SyncError):
    """Updating the local mirror from upstream failed."""


class ParseError(SyncError):
    """A data file is not valid JSON or lacks the records array."""

    def __init__(self, path: Union[str, Path], message: str):
        super().__init__(f"{path}: {message}")
        self.path = Path(path)


class StoreError(SyncError):
    """The document store rejected an operation or is unreachable."""
