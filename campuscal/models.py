from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, ClassVar

from campuscal.errors import FeedParseError
from campuscal.identity import derive_uid


TEXT_FIELDS = ("title", "description", "room", "instructor", "remarks")
DEFAULT_CALENDAR_NAME = "SAP Campus Dual Schedule"


def _ensure_tz(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def serialize_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return _ensure_tz(value).isoformat()


def timestamp_to_datetime(value: int) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _parse_timestamp(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if value is None or isinstance(value, bool):
        raise FeedParseError(f"event field '{key}' must be an integer timestamp, got {value!r}")
    try:
        timestamp = int(value)
        # Must be representable, the export and notifier render it as a datetime.
        timestamp_to_datetime(timestamp)
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        raise FeedParseError(f"event field '{key}' must be an integer timestamp, got {value!r}") from exc
    return timestamp


def _parse_text(payload: dict[str, Any], key: str, nullable: bool = False) -> str:
    if key not in payload:
        raise FeedParseError(f"event field '{key}' is missing")
    value = payload[key]
    if value is None and nullable:
        return ""
    if not isinstance(value, str):
        raise FeedParseError(f"event field '{key}' must be a string, got {value!r}")
    return value


@dataclass
class FeedConfig:
    url: str = ""
    cookie: str = ""
    timeout_seconds: int = 30

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "FeedConfig":
        data = data or {}
        return cls(
            url=str(data.get("url", "") or "").strip(),
            cookie=str(data.get("cookie", "") or "").strip(),
            timeout_seconds=max(1, int(data.get("timeout_seconds", 30))),
        )


@dataclass
class NotifierConfig:
    webhook_url: str = ""
    timeout_seconds: int = 15

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "NotifierConfig":
        data = data or {}
        return cls(
            webhook_url=str(data.get("webhook_url", "") or "").strip(),
            timeout_seconds=max(1, int(data.get("timeout_seconds", 15))),
        )


@dataclass
class SyncConfig:
    interval_seconds: int = 300
    calendar_name: str = DEFAULT_CALENDAR_NAME

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SyncConfig":
        data = data or {}
        return cls(
            interval_seconds=max(30, int(data.get("interval_seconds", 300))),
            calendar_name=str(data.get("calendar_name", DEFAULT_CALENDAR_NAME)).strip()
            or DEFAULT_CALENDAR_NAME,
        )


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8080

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ServerConfig":
        data = data or {}
        return cls(
            host=str(data.get("host", "0.0.0.0")).strip() or "0.0.0.0",
            port=int(data.get("port", 8080)),
        )


@dataclass
class LoggingConfig:
    level: str = "INFO"
    json: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "LoggingConfig":
        data = data or {}
        return cls(
            level=str(data.get("level", "INFO")).strip().upper() or "INFO",
            json=bool(data.get("json", False)),
        )


@dataclass
class AppConfig:
    feed: FeedConfig = field(default_factory=FeedConfig)
    notifier: NotifierConfig = field(default_factory=NotifierConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AppConfig":
        data = data or {}
        return cls(
            feed=FeedConfig.from_dict(data.get("feed")),
            notifier=NotifierConfig.from_dict(data.get("notifier")),
            sync=SyncConfig.from_dict(data.get("sync")),
            server=ServerConfig.from_dict(data.get("server")),
            logging=LoggingConfig.from_dict(data.get("logging")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FeedEvent:
    """One scheduled occurrence as reported by the upstream feed.

    ``start`` and ``end`` are Unix timestamps in seconds, exactly as the feed
    delivers them, so identity derivation never depends on timezone handling.
    """

    title: str = ""
    start: int = 0
    end: int = 0
    description: str = ""
    room: str = ""
    instructor: str = ""
    remarks: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "FeedEvent":
        if not isinstance(payload, dict):
            raise FeedParseError(f"event entry must be an object, got {type(payload).__name__}")
        return cls(
            title=_parse_text(payload, "title"),
            start=_parse_timestamp(payload, "start"),
            end=_parse_timestamp(payload, "end"),
            description=_parse_text(payload, "description"),
            room=_parse_text(payload, "room"),
            instructor=_parse_text(payload, "instructor"),
            remarks=_parse_text(payload, "remarks", nullable=True),
        )

    def with_updates(self, **kwargs: Any) -> "FeedEvent":
        return replace(self, **kwargs)

    @property
    def uid(self) -> str:
        return derive_uid(self)

    @property
    def start_datetime(self) -> datetime:
        return timestamp_to_datetime(self.start)

    @property
    def end_datetime(self) -> datetime:
        return timestamp_to_datetime(self.end)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["uid"] = self.uid
        payload["start_at"] = serialize_datetime(self.start_datetime)
        payload["end_at"] = serialize_datetime(self.end_datetime)
        return payload


@dataclass(frozen=True)
class Added:
    kind: ClassVar[str] = "added"
    event: FeedEvent

    @property
    def uid(self) -> str:
        return self.event.uid

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "uid": self.uid, "event": self.event.to_dict()}


@dataclass(frozen=True)
class Removed:
    kind: ClassVar[str] = "removed"
    event: FeedEvent

    @property
    def uid(self) -> str:
        return self.event.uid

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "uid": self.uid, "event": self.event.to_dict()}


@dataclass(frozen=True)
class Modified:
    kind: ClassVar[str] = "modified"
    old: FeedEvent
    new: FeedEvent
    changes: tuple[str, ...] = ()

    @property
    def event(self) -> FeedEvent:
        return self.new

    @property
    def uid(self) -> str:
        return self.new.uid

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "uid": self.uid,
            "event": self.new.to_dict(),
            "previous": self.old.to_dict(),
            "changes": list(self.changes),
        }


ChangeRecord = Added | Removed | Modified


@dataclass
class SyncResult:
    status: str
    message: str
    duration_ms: int
    changes: int
    notified: bool
    trigger: str
    run_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "duration_ms": self.duration_ms,
            "changes": self.changes,
            "notified": self.notified,
            "trigger": self.trigger,
            "run_at": serialize_datetime(self.run_at),
        }


def default_app_config() -> AppConfig:
    return AppConfig()
