#!/usr/bin/env python
import uuid


def new_identifier() -> str:
    """Returns a fresh token usable both as a VEVENT UID and as the
    file name stem of an event resource.  uuid1 is time based, so
    collisions within one calendar are practically impossible.
    """
    return uuid.uuid1().hex
