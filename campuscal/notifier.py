from __future__ import annotations

import logging
from typing import Any, Sequence

import requests

from campuscal.errors import NotificationError
from campuscal.models import (
    Added,
    ChangeRecord,
    FeedEvent,
    Modified,
    NotifierConfig,
    Removed,
    timestamp_to_datetime,
)


logger = logging.getLogger(__name__)

MAX_EMBEDS_PER_MESSAGE = 10
COLOR_ADDED = 3066993
COLOR_MODIFIED = 15105570
COLOR_REMOVED = 15158332


def _format_time(timestamp: int) -> str:
    return timestamp_to_datetime(timestamp).strftime("%Y-%m-%d %H:%M UTC")


def _field(name: str, value: str, inline: bool) -> dict[str, Any]:
    # Discord rejects empty field values.
    return {"name": name, "value": value or "-", "inline": inline}


def _location_fields(event: FeedEvent) -> list[dict[str, Any]]:
    return [_field("Room", event.room, True), _field("Date", _format_time(event.start), True)]


def build_embed(change: ChangeRecord) -> dict[str, Any]:
    if isinstance(change, Added):
        event = change.event
        return {
            "title": f"✅ New Event: {event.title}",
            "color": COLOR_ADDED,
            "fields": [
                _field("Room", event.room, True),
                _field("Instructor", event.instructor, True),
                _field("Start", _format_time(event.start), False),
                _field("End", _format_time(event.end), False),
            ],
        }
    if isinstance(change, Modified):
        return {
            "title": f"🔄 Event Modified: {change.new.title}",
            "color": COLOR_MODIFIED,
            "description": "**Changes:**\n" + "\n".join(change.changes),
            "fields": _location_fields(change.new),
        }
    if isinstance(change, Removed):
        return {
            "title": f"❌ Event Deleted: {change.event.title}",
            "color": COLOR_REMOVED,
            "fields": _location_fields(change.event),
        }
    raise TypeError(f"Unsupported change record: {type(change).__name__}")


def chunk_embeds(embeds: Sequence[dict[str, Any]], size: int = MAX_EMBEDS_PER_MESSAGE) -> list[list[dict[str, Any]]]:
    return [list(embeds[index : index + size]) for index in range(0, len(embeds), size)]


class WebhookNotifier:
    def __init__(self, config: NotifierConfig) -> None:
        self.config = config

    def is_configured(self) -> bool:
        return bool(self.config.webhook_url)

    def send(self, changes: Sequence[ChangeRecord]) -> int:
        """Post one embed per change, batched; returns the number of messages sent."""
        if not self.is_configured() or not changes:
            return 0
        embeds = [build_embed(change) for change in changes]
        sent = 0
        for chunk in chunk_embeds(embeds):
            try:
                response = requests.post(
                    self.config.webhook_url,
                    json={"embeds": chunk},
                    timeout=self.config.timeout_seconds,
                )
            except requests.RequestException as exc:
                raise NotificationError(f"Discord webhook failed: {exc}") from exc
            if not response.ok:
                raise NotificationError(f"Discord webhook failed: HTTP {response.status_code}")
            sent += 1
        logger.info("Delivered %d change notifications in %d messages", len(embeds), sent)
        return sent
