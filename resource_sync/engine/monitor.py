"""
Change Monitor — The polling loop that keeps the collection in sync.

Each tick:
1. Reads the mirror's current reference (newest branch tip)
2. Fetches and reads the remote's HEAD
3. If they match, stops (UP_TO_DATE)
4. Otherwise pulls, reloads every record, and replaces the collection (SYNCING)

A pull whose load or replace then failed leaves a reload pending; the
next tick retries the load and replace even if nothing new arrived.

    IDLE → CHECKING → UP_TO_DATE → IDLE
                    ↘ SYNCING    ↗

A failing tick is reported through the FailureNotifier and otherwise
ignored; the next tick runs on schedule. Ticks never overlap: the delay
is measured from the end of one tick to the start of the next, on a
single background thread.

## Tick ID Format

    T-{YYYYMMDD}T{HHMMSS}-{RANDOM}
    Example: T-20260204T221903-92929A

## Usage

    from resource_sync.engine.monitor import ChangeMonitor

    monitor = ChangeMonitor(mirror, store, interval=2)
    monitor.initial_sync()   # errors propagate
    monitor.start()          # background thread
    ...
    monitor.stop()
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional
from uuid import uuid4

from ..errors import NoCommitsError
from ..loader.records import DEFAULT_DATA_DIR, DEFAULT_RECORDS_FIELD, load_all
from ..mirror.repository import RepositoryMirror
from ..store.mongo import MongoStore
from .notifier import FailureNotifier
from .state import MonitorState, SyncState

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    """Result of a tick execution."""

    tick_id: str
    started_at: str
    ended_at: Optional[str] = None
    duration_ms: int = 0

    # Monitor states visited, in order
    states: List[str] = field(default_factory=list)

    # References
    local_reference: Optional[str] = None
    remote_reference: Optional[str] = None

    # Sync
    synced: bool = False
    records_loaded: int = 0

    # Failure
    error: Optional[str] = None
    reported: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def generate_tick_id() -> str:
    """Generate a unique tick ID."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    suffix = uuid4().hex[:6].upper()
    return f"T-{ts}-{suffix}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ChangeMonitor:
    """Fixed-delay poller driving pull, load and replace."""

    def __init__(
        self,
        mirror: RepositoryMirror,
        store: MongoStore,
        notifier: Optional[FailureNotifier] = None,
        interval: float = 2,
        data_dir: str = DEFAULT_DATA_DIR,
        records_field: str = DEFAULT_RECORDS_FIELD,
        state: Optional[SyncState] = None,
        load: Callable[..., List[Any]] = load_all,
    ):
        self.mirror = mirror
        self.store = store
        self.notifier = notifier or FailureNotifier()
        self.interval = interval
        self.data_dir = data_dir
        self.records_field = records_field
        self.state = state or SyncState()
        self._load = load

        self.monitor_state = MonitorState.IDLE
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Sync steps
    # ------------------------------------------------------------------

    def _reload(self) -> int:
        """Load every record from the mirror and replace the collection."""
        records = self._load(
            self.mirror.path,
            data_dir=self.data_dir,
            records_field=self.records_field,
        )
        return self.store.replace_all(records)

    def initial_sync(self) -> int:
        """
        Load the freshly cloned mirror into the store.

        Runs once at startup, before the loop. Errors propagate: without a
        first successful sync there is nothing for the loop to maintain.

        Returns:
            Number of records stored
        """
        try:
            self.state.last_local_reference = self.mirror.current_reference()
        except NoCommitsError:
            logger.warning("Mirror has no commits yet")
            self.state.last_local_reference = None

        count = self._reload()
        logger.info(
            f"Initial sync complete: {count} record(s) at "
            f"{self.state.last_local_reference or 'empty repository'}"
        )
        return count

    def _enter(self, new_state: MonitorState, result: TickResult) -> None:
        self.monitor_state = new_state
        result.states.append(new_state.value)

    def tick(self) -> TickResult:
        """
        Run one check and, if the remote moved, one full sync.

        Never raises: failures are handed to the notifier along with the
        local reference captured before the failure (None if it could not
        be read).
        """
        start_time = time.time()
        result = TickResult(tick_id=generate_tick_id(), started_at=_now_iso())
        local_reference: Optional[str] = None

        self._enter(MonitorState.CHECKING, result)

        try:
            local_reference = self.mirror.current_reference()
            result.local_reference = local_reference

            remote_reference = self.mirror.latest_remote_reference()
            result.remote_reference = remote_reference

            pull_required = local_reference != remote_reference
            logger.info(
                f"Remote commit {remote_reference} Local commit {local_reference}. "
                f"Pull required? {pull_required}",
                extra={"tick_id": result.tick_id},
            )

            if not pull_required and not self.state.reload_pending:
                self._enter(MonitorState.UP_TO_DATE, result)
            else:
                self._enter(MonitorState.SYNCING, result)

                if pull_required:
                    self.mirror.pull()
                    self.state.reload_pending = True
                    previous_reference = self.state.last_local_reference
                    local_reference = self.mirror.current_reference()
                    self.state.last_local_reference = local_reference
                    result.local_reference = local_reference
                    logger.debug(
                        f"Mirror moved {previous_reference} -> {local_reference}",
                        extra={"tick_id": result.tick_id},
                    )
                else:
                    logger.info(
                        f"Retrying load of {local_reference} after a failed sync",
                        extra={"tick_id": result.tick_id, "reference": local_reference},
                    )

                result.records_loaded = self._reload()
                self.state.reload_pending = False
                result.synced = True

        except Exception as e:
            result.error = f"{type(e).__name__}: {e}"
            result.reported = self.notifier.report(self.state, local_reference, e)

        finally:
            self._enter(MonitorState.IDLE, result)
            result.ended_at = _now_iso()
            result.duration_ms = int((time.time() - start_time) * 1000)

        if result.synced:
            logger.info(
                f"Tick {result.tick_id}: synced {result.records_loaded} record(s) "
                f"at {result.local_reference} ({result.duration_ms}ms)",
                extra={"tick_id": result.tick_id, "reference": result.local_reference},
            )
        return result

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run_forever(self) -> None:
        """Tick every `interval` seconds until stop() is called."""
        logger.info(f"Change monitor started (every {self.interval}s)")
        while not self._stop.wait(timeout=self.interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Tick loop error (will retry)")
        logger.info("Change monitor stopped")

    def start(self) -> threading.Thread:
        """Run the loop on a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread

        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run_forever,
            name="change-monitor",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        """Ask the loop to exit and wait for the current tick to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
