"""Replay pending syncs when an owner re-authenticates."""

from __future__ import annotations

import logging

from recordsync.pending.entry import PendingSyncRetryResult
from recordsync.pending.manager import LOG_PREFIX, PendingSyncManager

logger = logging.getLogger(__name__)


class RetryOnAuthentication:
    """Callback for "owner authenticated" notifications from the auth layer."""

    def __init__(self, manager: PendingSyncManager) -> None:
        self.manager = manager

    def __call__(self, owner: str) -> PendingSyncRetryResult | None:
        return self.handle(owner)

    def handle(self, owner: str) -> PendingSyncRetryResult | None:
        """Retry the owner's pending syncs, if any. Returns None when nothing ran."""
        if not self.manager.is_enabled() or not self.manager.config.auto_retry:
            self._log(logging.DEBUG, "Pending syncs are disabled, skipping retry")
            return None

        if not self.manager.has_pending_syncs(owner):
            self._log(logging.DEBUG, f"No pending syncs for {owner}")
            return None

        count = self.manager.count_for_owner(owner)
        self._log(logging.INFO, f"Retrying {count} pending syncs for {owner} after reauth")

        result = self.manager.retry_for_owner(owner)
        self._log(
            logging.INFO,
            f"Pending syncs retry for {owner} completed: total={result.total} "
            f"succeeded={result.succeeded} failed={result.failed} skipped={result.skipped}",
        )
        return result

    def _log(self, level: int, message: str) -> None:
        if self.manager.config.log:
            logger.log(level, f"{LOG_PREFIX} {message}")
