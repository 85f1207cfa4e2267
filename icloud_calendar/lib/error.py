#!/usr/bin/env python
import logging
import os
from typing import Optional

from icloud_calendar import __version__

## one of DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("PYTHON_ICLOUD_CALENDAR_DEBUGMODE")
if not debugmode:
    if "dev" in __version__:
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("icloud_calendar")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.WARNING)


def errmsg(r) -> str:
    """Utility for formatting a an error response to an error string"""
    return "%s %s\n\n%s" % (r.status, r.reason, r.raw)


def weirdness(*reasons) -> None:
    reason = " : ".join(str(x) for x in reasons)
    log.warning(f"Deviation from expectations found: {reason}")


class ICloudCalendarError(Exception):
    url: Optional[str] = None
    reason: str = "no reason"

    def __init__(self, url: Optional[str] = None, reason: Optional[str] = None) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason

    def __str__(self) -> str:
        return "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )


class EventCreationFailed(ICloudCalendarError):
    """
    The server refused to store the event (any status outside 2xx)
    """

    reason = "Event was not created"


class EventDeletionFailed(ICloudCalendarError):
    """
    The server did not answer the DELETE with 204 No Content
    """

    reason = "Event was not deleted"


class EventFetchFailed(ICloudCalendarError):
    reason = "Failed to fetch events"


class CalendarDiscoveryFailed(ICloudCalendarError):
    """
    One of the principal, calendar-home-set or calendar listing
    lookups failed, or the server left out a property we depend on.
    """

    reason = "Failed to discover calendars"


class ICalendarParseError(ICloudCalendarError):
    """
    Only raised by the parser in strict mode.  The url property is
    unused, the reason property holds the offending line.
    """

    pass
