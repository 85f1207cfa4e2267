#!/usr/bin/env python
"""
Minimal iCalendar (RFC 5545) support: just enough to write the events
we create and to read back the events iCloud hands us in a
calendar-query REPORT.

This is deliberately not a full iCalendar implementation.  There is
no line unfolding, no VTIMEZONE/VALARM handling and no recurrence
expansion.  Anything not explicitly understood is passed through as
raw text.
"""
import logging
import re
from datetime import date
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Union
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError

from icalendar import vText
from icalendar.parser import dquote

from icloud_calendar.lib import error
from icloud_calendar.lib.identifiers import new_identifier
from icloud_calendar.objects import Attendee
from icloud_calendar.objects import Event

log = logging.getLogger("icloud_calendar")

UID_DOMAIN = "zaptime.app"

DATETIME_FORMAT = "%Y%m%dT%H%M%S"
DATE_FORMAT = "%Y%m%d"

CRLF = "\r\n"

_tzid_re = re.compile(r';TZID=("[^"]*"|[^;:]+)')

TimeStamp = Union[date, datetime]


def to_utc(ts: TimeStamp) -> datetime:
    """coerce dates and datetimes to an aware UTC datetime.

    A naive datetime is taken to be UTC already, a date means
    midnight UTC.
    """
    if not isinstance(ts, datetime):
        ts = datetime(ts.year, ts.month, ts.day)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def format_utc(ts: TimeStamp) -> str:
    return to_utc(ts).strftime(DATETIME_FORMAT + "Z")


def _text(value: str, escape: bool) -> str:
    if not escape:
        return value
    return vText(value).to_ical().decode("utf-8")


def encode_event(
    summary: str,
    description: str,
    start: TimeStamp,
    end: TimeStamp,
    attendees: Iterable[Attendee] = (),
    uid: Optional[str] = None,
    escape: bool = False,
    uid_generator: Callable[[], str] = new_identifier,
) -> str:
    """
    Builds a VCALENDAR document holding exactly one VEVENT.

    Args:
        summary: the event title
        description: free text
        start, end: the event timespan, rendered in UTC
        attendees: one ATTENDEE line is written for each, in order
        uid: the UID stem, ``@zaptime.app`` is appended.  A fresh
          identifier is generated if not given.
        escape: escape TEXT values and quote attendee names as
          RFC 5545 requires.  Off by default, values are written as is.

    Returns:
        the iCalendar text, with CRLF line endings
    """
    if uid is None:
        uid = uid_generator()

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "BEGIN:VEVENT",
        "UID:%s@%s" % (uid, UID_DOMAIN),
        "SUMMARY:" + _text(summary, escape),
        "DESCRIPTION:" + _text(description, escape),
    ]
    for attendee in attendees:
        name = dquote(attendee.name) if escape else attendee.name
        lines.append("ATTENDEE;CN=%s:mailto:%s" % (name, attendee.email))
    lines.append("DTSTART:" + format_utc(start))
    lines.append("DTEND:" + format_utc(end))
    lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return CRLF.join(lines) + CRLF


def _zone(tzid: str, strict: bool) -> Optional[ZoneInfo]:
    try:
        return ZoneInfo(tzid)
    except (ZoneInfoNotFoundError, ValueError):
        if strict:
            raise error.ICalendarParseError(reason=f"unknown TZID {tzid}")
        error.weirdness("unknown TZID, property dropped", tzid)
        return None


def _parse_timestamp(
    value: str, fmt: str, tzid: Optional[str], strict: bool
) -> Optional[datetime]:
    tz = timezone.utc
    if fmt == DATETIME_FORMAT and value.endswith("Z"):
        ## explicit UTC, any TZID seen so far does not apply
        value = value[:-1]
    elif tzid:
        tz = _zone(tzid, strict)
        if tz is None:
            return None
    try:
        ts = datetime.strptime(value, fmt)
    except ValueError:
        if strict:
            raise error.ICalendarParseError(
                reason=f"{value!r} does not match {fmt}"
            )
        error.weirdness("unparseable timestamp, property dropped", value)
        return None
    return ts.replace(tzinfo=tz)


def _parse_property(props: Dict[str, Any], key: str, value: str, strict: bool) -> None:
    tzid = _tzid_re.search(key)
    if tzid:
        ## last TZID in the event wins.  Only the TZID parameter is cut
        ## out of the key, other parameters stay.
        props["timezone"] = tzid.group(1).strip('"')
        key = key[: tzid.start()] + key[tzid.end() :]
        ## a DTSTART/DTEND with its own TZID is a date-time, whatever
        ## else it says, DTSTART;TZID=...;VALUE=DATE included
        name = key.split(";", 1)[0]
        if name in ("DTSTART", "DTEND"):
            key = name

    if key in ("DTSTART", "DTEND"):
        ts = _parse_timestamp(value, DATETIME_FORMAT, props.get("timezone"), strict)
        if ts is not None:
            props[key.lower()] = ts
    elif key in ("DTSTART;VALUE=DATE", "DTEND;VALUE=DATE"):
        ts = _parse_timestamp(value, DATE_FORMAT, props.get("timezone"), strict)
        if ts is not None:
            props[key.replace(";VALUE=DATE", "").lower()] = ts
    else:
        props[key.lower()] = value


def parse_calendar_text(text: Union[str, bytes], strict: bool = False) -> List[Event]:
    """
    Decodes the VEVENTs found in a VCALENDAR body.

    The parser is lenient by default: content lines without a colon
    are ignored, unparseable timestamps are dropped and a VEVENT that
    is never closed yields nothing.  With ``strict=True`` those cases
    raise :class:`icloud_calendar.lib.error.ICalendarParseError` instead.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8")

    events: List[Event] = []
    props: Dict[str, Any] = {}
    inside_event = False

    for line in text.split("\n"):
        line = line.strip()

        if line == "BEGIN:VEVENT":
            inside_event = True
            props = {}
        elif line == "END:VEVENT":
            if not inside_event:
                if strict:
                    raise error.ICalendarParseError(reason="END:VEVENT without BEGIN")
                continue
            inside_event = False
            events.append(Event.from_properties(props))
        elif inside_event and line:
            if ":" not in line:
                if strict:
                    raise error.ICalendarParseError(
                        reason=f"content line without colon: {line!r}"
                    )
                log.debug(f"ignoring content line without colon: {line!r}")
                continue
            key, value = line.split(":", 1)
            _parse_property(props, key, value, strict)

    if inside_event:
        if strict:
            raise error.ICalendarParseError(reason="unterminated VEVENT")
        log.debug("dropping unterminated VEVENT")

    return events


def parse_calendar_data(
    fragments: Iterable[Union[str, bytes]], strict: bool = False
) -> List[Event]:
    """Parses each calendar-data payload and concatenates the events, in order"""
    events: List[Event] = []
    for fragment in fragments:
        events.extend(parse_calendar_text(fragment, strict=strict))
    return events
