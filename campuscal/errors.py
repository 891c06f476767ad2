from __future__ import annotations


class CampusCalError(Exception):
    """Base class for errors raised by campuscal."""


class FeedFetchError(CampusCalError):
    """Upstream feed was unreachable or answered with a non-success status."""


class FeedParseError(CampusCalError):
    """Upstream payload was not a JSON list of event objects."""


class NotificationError(CampusCalError):
    """Webhook delivery of change records failed."""
