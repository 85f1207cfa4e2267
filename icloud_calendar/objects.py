#!/usr/bin/env python
"""
Plain value types handed in and out of :class:`icloud_calendar.ICloudCalendar`.

None of them holds a reference to a client or knows how to talk to the
server, they are request/response scoped values only.
"""
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from typing import Any
from typing import Dict
from typing import Iterator
from typing import Optional


@dataclass(frozen=True)
class Attendee:
    name: str
    email: str


@dataclass(frozen=True)
class Calendar:
    """
    A calendar collection as found by
    :meth:`icloud_calendar.ICloudCalendar.list_calendars`.

    Attributes:
        url: absolute URL of the collection, ending with a slash
        name: the display name
    """

    url: str
    name: str


## Property names that are lifted out of the passthrough mapping
KNOWN_FIELDS = ("summary", "description", "dtstart", "dtend", "timezone")


@dataclass
class Event:
    """
    An event as decoded by :func:`icloud_calendar.lib.vcal.parse_calendar_text`.

    The well-known properties are attributes, everything else the
    server sent is kept verbatim in ``extra``, under the lowercased
    property name (including any parameters, like ``attendee;cn=john doe``).

    The object can also be read like a mapping, so ``event["uid"]``
    and ``event["dtstart"]`` both work.
    """

    summary: Optional[str] = None
    description: Optional[str] = None
    dtstart: Optional[datetime] = None
    dtend: Optional[datetime] = None
    timezone: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_properties(cls, props: Dict[str, Any]) -> "Event":
        props = dict(props)
        known = {key: props.pop(key) for key in KNOWN_FIELDS if key in props}
        return cls(extra=props, **known)

    def as_dict(self) -> Dict[str, Any]:
        ret: Dict[str, Any] = {}
        for key in KNOWN_FIELDS:
            value = getattr(self, key)
            if value is not None:
                ret[key] = value
        ret.update(self.extra)
        return ret

    def get(self, key: str, default: Any = None) -> Any:
        return self.as_dict().get(key.lower(), default)

    def __getitem__(self, key: str) -> Any:
        return self.as_dict()[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self.as_dict()

    def __iter__(self) -> Iterator[str]:
        return iter(self.as_dict())
