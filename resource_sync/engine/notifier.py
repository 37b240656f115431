"""
Failure Notifier — Surface tick failures once per reference.

A broken commit fails every tick until someone pushes a fix. Operators are
told about it once: later failures at the same reference are suppressed.
A failure with no known reference (the mirror could not even be read) is
always surfaced and does not move the dedup key.

Deduplication only affects alerting. The monitor retries on its schedule
regardless.

## Alert Webhook

When a webhook URL is configured, each surfaced failure is also POSTed:

{
    "event": "resource_sync_failure",
    "reference": "3f2a...",
    "error_type": "ParseError",
    "message": "data/hpc.json: missing 'sgciResources' field",
    "timestamp": "2026-02-04T12:00:00Z"
}
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from .state import SyncState

logger = logging.getLogger(__name__)


class FailureNotifier:
    """Deduplicating failure reporter."""

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 10):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def report(
        self,
        state: SyncState,
        reference: Optional[str],
        error: BaseException,
    ) -> bool:
        """
        Surface the failure unless it was already surfaced for this reference.

        Returns:
            True if the failure was surfaced, False if suppressed
        """
        if reference is not None:
            if reference == state.last_reported_reference:
                logger.debug(f"Failure at {reference} already reported, suppressing")
                return False
            state.last_reported_reference = reference

        self._surface(reference, error)
        return True

    def _surface(self, reference: Optional[str], error: BaseException) -> None:
        logger.error(
            f"Sync failed at {reference or 'unknown reference'}: "
            f"{type(error).__name__}: {error}",
            exc_info=(type(error), error, error.__traceback__),
            extra={"reference": reference},
        )

        if self.webhook_url:
            self._post_alert(reference, error)

    def _post_alert(self, reference: Optional[str], error: BaseException) -> None:
        payload = {
            "event": "resource_sync_failure",
            "reference": reference,
            "error_type": type(error).__name__,
            "message": str(error),
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

        try:
            response = httpx.post(
                self.webhook_url,
                json=payload,
                timeout=self.timeout,
                headers={"User-Agent": "resource-sync/0.1"},
            )
        except httpx.TimeoutException:
            logger.warning(f"Alert webhook {self.webhook_url} timed out")
            return
        except httpx.RequestError as e:
            logger.warning(f"Alert webhook {self.webhook_url} failed: {e}")
            return

        if response.status_code < 400:
            logger.info(f"Alert webhook: {response.status_code}")
        else:
            logger.warning(f"Alert webhook returned {response.status_code}")
