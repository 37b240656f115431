"""
Sync State — The monitor's mutable memory between ticks.

Owned by the ChangeMonitor and written only from its thread. Passed
explicitly to the FailureNotifier on each report. Never persisted: a
restart begins with a fresh clone and a fresh state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MonitorState(str, Enum):
    """Phases of a single monitor tick."""
    IDLE = "idle"
    CHECKING = "checking"
    UP_TO_DATE = "up_to_date"
    SYNCING = "syncing"


@dataclass
class SyncState:
    """References remembered across ticks."""

    # Mirror reference after the last successful clone or pull
    last_local_reference: Optional[str] = None

    # Reference whose failure was last surfaced to operators
    last_reported_reference: Optional[str] = None

    # Set once the mirror has moved, cleared once the store holds its records
    reload_pending: bool = False
