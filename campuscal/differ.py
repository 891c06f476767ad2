from __future__ import annotations

from typing import Mapping

from campuscal.models import Added, ChangeRecord, FeedEvent, Modified, Removed


# (attribute, label, show values). Title, start, end and room are part of the
# identity, so a differing value there never reaches compare_events through
# diff_snapshots; the checks stay in case the identity scheme changes.
COMPARE_FIELD_ORDER = (
    ("title", "Title", True),
    ("start", "Start time", False),
    ("end", "End time", False),
    ("room", "Room", True),
    ("instructor", "Instructor", True),
    ("remarks", "Remarks", True),
)


def compare_events(old: FeedEvent, new: FeedEvent) -> list[str]:
    changes: list[str] = []
    for field, label, show_values in COMPARE_FIELD_ORDER:
        before = getattr(old, field)
        after = getattr(new, field)
        if before == after:
            continue
        if show_values:
            changes.append(f"{label}: '{before}' -> '{after}'")
        else:
            changes.append(f"{label} changed")
    return changes


def diff_snapshots(
    old: Mapping[str, FeedEvent],
    new: Mapping[str, FeedEvent],
) -> list[ChangeRecord]:
    """Classify every identity that differs between two snapshots.

    Each identity contributes at most one record. The order of records is not
    part of the contract.
    """
    records: list[ChangeRecord] = []
    for uid, old_event in old.items():
        new_event = new.get(uid)
        if new_event is None:
            records.append(Removed(old_event))
            continue
        field_changes = compare_events(old_event, new_event)
        if field_changes:
            records.append(Modified(old_event, new_event, tuple(field_changes)))
    for uid, new_event in new.items():
        if uid not in old:
            records.append(Added(new_event))
    return records
