from __future__ import annotations

from typing import Any

from campuscal.models import FeedEvent


BASE_START = 1772355600  # 2026-03-01 09:00 UTC


def make_event(**overrides: Any) -> FeedEvent:
    values: dict[str, Any] = {
        "title": "Software Engineering",
        "start": BASE_START,
        "end": BASE_START + 5400,
        "description": "Lecture",
        "room": "R1",
        "instructor": "Smith",
        "remarks": "",
    }
    values.update(overrides)
    return FeedEvent(**values)


def snapshot_of(*events: FeedEvent) -> dict[str, FeedEvent]:
    return {event.uid: event for event in events}
