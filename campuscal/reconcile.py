from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from campuscal.encoding import Normalizer, fix_mojibake, normalize_event
from campuscal.models import ChangeRecord, FeedEvent
from campuscal.snapshot_store import SnapshotStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleOutcome:
    changes: list[ChangeRecord]
    silent: bool = False

    @property
    def should_notify(self) -> bool:
        return bool(self.changes) and not self.silent


def build_snapshot(
    events: Iterable[FeedEvent],
    normalizer: Normalizer = fix_mojibake,
) -> dict[str, FeedEvent]:
    snapshot: dict[str, FeedEvent] = {}
    for raw_event in events:
        event = normalize_event(raw_event, normalizer)
        uid = event.uid
        if uid in snapshot:
            # Later records win on identity collisions.
            logger.debug("Duplicate feed entry for %s (%s), keeping the later one", uid, event.title)
        snapshot[uid] = event
    return snapshot


class ReconciliationCycle:
    def __init__(self, store: SnapshotStore, normalizer: Normalizer = fix_mojibake) -> None:
        self.store = store
        self.normalizer = normalizer

    def run_cycle(self, raw_events: Iterable[FeedEvent], silent: bool = False) -> CycleOutcome:
        """Install ``raw_events`` as the current snapshot and report what changed.

        ``silent`` marks the outcome as not-to-be-notified (used for the first
        cycle after boot); the store is updated either way.
        """
        snapshot = build_snapshot(raw_events, self.normalizer)
        changes = self.store.replace(snapshot)
        logger.info(
            "Reconciled %d events: %d changes%s",
            len(snapshot),
            len(changes),
            " (silent)" if silent else "",
        )
        return CycleOutcome(changes=changes, silent=silent)
