"""
Engine — Change monitor, failure notifier, and their shared state.
"""

from .monitor import ChangeMonitor, TickResult
from .notifier import FailureNotifier
from .state import MonitorState, SyncState

__all__ = [
    "ChangeMonitor",
    "TickResult",
    "FailureNotifier",
    "MonitorState",
    "SyncState",
]
