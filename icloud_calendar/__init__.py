#!/usr/bin/env python
import logging

__version__ = "0.1.0"

from .icloudclient import ICloudCalendar
from .objects import Attendee
from .objects import Calendar
from .objects import Event

## Silence notification of no default logging handler
log = logging.getLogger("icloud_calendar")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = ["__version__", "ICloudCalendar", "Attendee", "Calendar", "Event"]
