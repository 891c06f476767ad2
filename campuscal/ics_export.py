from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from icalendar import Calendar as ICalendar
from icalendar import Event as ICEvent

from campuscal.models import DEFAULT_CALENDAR_NAME, FeedEvent


PRODID = "-//campuscal//SAP Campus Dual Schedule//EN"


def event_description(event: FeedEvent) -> str:
    lines = [f"Room: {event.room}", f"Instructor: {event.instructor}"]
    if event.remarks:
        lines.append(f"Remarks: {event.remarks}")
    return f"{event.description}\n\n" + "\n".join(lines)


def build_vevent(event: FeedEvent, stamp: datetime) -> ICEvent:
    vevent = ICEvent()
    vevent.add("UID", event.uid)
    vevent.add("DTSTAMP", stamp)
    vevent.add("SUMMARY", event.title)
    vevent.add("DESCRIPTION", event_description(event))
    if event.room:
        vevent.add("LOCATION", event.room)
    vevent.add("DTSTART", event.start_datetime)
    vevent.add("DTEND", event.end_datetime)
    return vevent


def build_calendar(
    events: Iterable[FeedEvent],
    name: str = DEFAULT_CALENDAR_NAME,
    stamp: datetime | None = None,
) -> str:
    stamp = stamp or datetime.now(timezone.utc)
    calendar_obj = ICalendar()
    calendar_obj.add("PRODID", PRODID)
    calendar_obj.add("VERSION", "2.0")
    calendar_obj.add("CALSCALE", "GREGORIAN")
    calendar_obj.add("X-WR-CALNAME", name)
    for event in sorted(events, key=lambda item: (item.start, item.uid)):
        calendar_obj.add_component(build_vevent(event, stamp))
    return calendar_obj.to_ical().decode("utf-8")
