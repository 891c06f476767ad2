from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from campuscal.config_manager import ConfigManager
from campuscal.encoding import Normalizer, fix_mojibake
from campuscal.errors import FeedFetchError, FeedParseError, NotificationError
from campuscal.feed_client import FeedClient
from campuscal.models import ChangeRecord, FeedConfig, NotifierConfig, SyncResult
from campuscal.notifier import WebhookNotifier
from campuscal.reconcile import ReconciliationCycle
from campuscal.snapshot_store import SnapshotStore


logger = logging.getLogger(__name__)

SILENT_TRIGGERS = {"startup"}


def _elapsed_ms(started_at: datetime) -> int:
    return int((datetime.now(timezone.utc) - started_at).total_seconds() * 1000)


class SyncEngine:
    """Runs one fetch -> reconcile -> notify pass.

    Only one pass runs at a time; a call made while another is in flight is
    dropped and reported as skipped. Fetching and notification happen outside
    the snapshot store's lock.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        store: SnapshotStore,
        feed_client_factory: Callable[[FeedConfig], FeedClient] = FeedClient,
        notifier_factory: Callable[[NotifierConfig], WebhookNotifier] = WebhookNotifier,
        normalizer: Normalizer = fix_mojibake,
    ) -> None:
        self.config_manager = config_manager
        self.store = store
        self.feed_client_factory = feed_client_factory
        self.notifier_factory = notifier_factory
        self.cycle = ReconciliationCycle(store, normalizer)
        self._run_lock = threading.Lock()
        self._result_lock = threading.Lock()
        self._last_result: SyncResult | None = None
        self._recent_changes: list[ChangeRecord] = []

    @property
    def last_result(self) -> SyncResult | None:
        with self._result_lock:
            return self._last_result

    @property
    def recent_changes(self) -> list[ChangeRecord]:
        """Changes from the most recent cycle that had any, notified or not."""
        with self._result_lock:
            return list(self._recent_changes)

    def _finish(self, result: SyncResult) -> SyncResult:
        with self._result_lock:
            self._last_result = result
        return result

    def run_once(self, trigger: str = "manual") -> SyncResult:
        if not self._run_lock.acquire(blocking=False):
            logger.info("Sync already running, dropping %s trigger", trigger)
            return SyncResult(
                status="skipped",
                message="Sync already in progress.",
                duration_ms=0,
                changes=0,
                notified=False,
                trigger=trigger,
            )
        try:
            return self._finish(self._run(trigger))
        finally:
            self._run_lock.release()

    def _run(self, trigger: str) -> SyncResult:
        started_at = datetime.now(timezone.utc)
        # Nothing was installed yet, so every event would be reported as new.
        silent = trigger in SILENT_TRIGGERS or self.store.version == 0

        try:
            config = self.config_manager.load()
            if not config.feed.url:
                message = "Feed URL missing. Sync skipped."
                logger.warning(message)
                return SyncResult(
                    status="skipped",
                    message=message,
                    duration_ms=_elapsed_ms(started_at),
                    changes=0,
                    notified=False,
                    trigger=trigger,
                )

            events = self.feed_client_factory(config.feed).fetch_events()
            outcome = self.cycle.run_cycle(events, silent=silent)
            if outcome.changes:
                with self._result_lock:
                    self._recent_changes = list(outcome.changes)

            notified = False
            message = f"{len(outcome.changes)} changes detected."
            if outcome.should_notify:
                notifier = self.notifier_factory(config.notifier)
                try:
                    notified = notifier.send(outcome.changes) > 0
                except NotificationError as exc:
                    # The snapshot stays committed; delivery is best effort.
                    logger.error("Failed to send notification: %s", exc)
                    message += f" Notification failed: {exc}"
            elif outcome.silent and outcome.changes:
                logger.info("Suppressing notification for %d changes (%s)", len(outcome.changes), trigger)

            return SyncResult(
                status="success",
                message=message,
                duration_ms=_elapsed_ms(started_at),
                changes=len(outcome.changes),
                notified=notified,
                trigger=trigger,
            )
        except (FeedFetchError, FeedParseError) as exc:
            logger.error("Polling error (%s): %s", trigger, exc)
            error_message = f"{type(exc).__name__}: {exc}"
        except Exception as exc:
            logger.exception("Unexpected error during %s sync", trigger)
            error_message = f"{type(exc).__name__}: {exc}"

        return SyncResult(
            status="error",
            message=error_message,
            duration_ms=_elapsed_ms(started_at),
            changes=0,
            notified=False,
            trigger=trigger,
        )
