from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import requests

from campuscal.errors import FeedFetchError, FeedParseError
from campuscal.models import FeedConfig, FeedEvent


logger = logging.getLogger(__name__)

ERROR_BODY_PREVIEW = 500


def feed_window(now: datetime) -> tuple[datetime, datetime]:
    """First day of the previous month through day 28 of the month five months ahead."""
    now_utc = now.astimezone(timezone.utc) if now.tzinfo else now.replace(tzinfo=timezone.utc)
    if now_utc.month == 1:
        start = datetime(now_utc.year - 1, 12, 1, tzinfo=timezone.utc)
    else:
        start = datetime(now_utc.year, now_utc.month - 1, 1, tzinfo=timezone.utc)
    end_month = now_utc.month + 5
    end_year = now_utc.year
    if end_month > 12:
        end_month -= 12
        end_year += 1
    end = datetime(end_year, end_month, 28, 23, 59, 59, tzinfo=timezone.utc)
    return start, end


def build_feed_url(base_url: str, now: datetime | None = None) -> str:
    start, end = feed_window(now or datetime.now(timezone.utc))
    url = base_url.strip()
    if "?" in url:
        base, query = url.split("?", 1)
        params = [
            param
            for param in query.split("&")
            if param and not param.startswith("start=") and not param.startswith("end=")
        ]
        url = f"{base}?{'&'.join(params)}" if params else base
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}start={int(start.timestamp())}&end={int(end.timestamp())}"


def parse_events(payload: Any) -> list[FeedEvent]:
    if not isinstance(payload, list):
        raise FeedParseError(f"feed payload must be a list, got {type(payload).__name__}")
    return [FeedEvent.from_dict(item) for item in payload]


class FeedClient:
    def __init__(self, config: FeedConfig) -> None:
        self.config = config

    def fetch_events(self, now: datetime | None = None) -> list[FeedEvent]:
        url = build_feed_url(self.config.url, now)
        headers = {"Accept": "application/json"}
        if self.config.cookie:
            headers["Cookie"] = self.config.cookie
        logger.info("Fetching events from feed")
        try:
            response = requests.get(url, headers=headers, timeout=self.config.timeout_seconds)
        except requests.RequestException as exc:
            raise FeedFetchError(f"Failed to fetch events: {exc}") from exc
        if not response.ok:
            body = (response.text or "")[:ERROR_BODY_PREVIEW]
            raise FeedFetchError(f"Failed to fetch events: HTTP {response.status_code} - {body}")
        try:
            payload = response.json()
        except ValueError as exc:
            preview = (response.text or "")[:ERROR_BODY_PREVIEW]
            raise FeedParseError(f"Failed to parse JSON: {exc} - Response: {preview}") from exc
        events = parse_events(payload)
        logger.info("Fetched %d events", len(events))
        return events
