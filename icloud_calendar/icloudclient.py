#!/usr/bin/env python
"""
The ``ICloudCalendar`` class is the entry point of the library.  It
holds the iCloud credentials and offers the four calendar operations:
``list_calendars``, ``list_events``, ``create_event`` and ``delete_event``.

All the WebDAV/CalDAV plumbing is done by the ``caldav`` library; a
fresh ``caldav.DAVClient`` is built for every operation, so an
``ICloudCalendar`` object keeps no connection state between calls.
"""
import logging
from typing import Callable
from typing import Iterable
from typing import List
from typing import Optional
from typing import Sequence
from typing import Union
from urllib.parse import quote

from caldav.davclient import DAVClient
from caldav.davclient import DAVResponse
from caldav.elements import cdav
from caldav.elements import dav
from caldav.elements.base import BaseElement
from caldav.lib.url import URL
from lxml import etree
from requests.auth import HTTPBasicAuth

from icloud_calendar.lib import error
from icloud_calendar.lib.error import errmsg
from icloud_calendar.lib.identifiers import new_identifier
from icloud_calendar.lib.vcal import encode_event
from icloud_calendar.lib.vcal import parse_calendar_data
from icloud_calendar.lib.vcal import TimeStamp
from icloud_calendar.lib.vcal import to_utc
from icloud_calendar.objects import Attendee
from icloud_calendar.objects import Calendar
from icloud_calendar.objects import Event

log = logging.getLogger("icloud_calendar")

ICLOUD_URL = "https://caldav.icloud.com/"

CALENDAR_CONTENT_TYPE = "text/calendar; charset=utf-8"


def _ok(response: DAVResponse) -> bool:
    return 200 <= response.status < 300


def _to_xml(root: BaseElement) -> bytes:
    return etree.tostring(root.xmlelement(), encoding="utf-8", xml_declaration=True)


def _join(base: Union[URL, str], href: str) -> URL:
    """
    Resolves an href found in a response against the URL the request
    was sent to.  iCloud frequently hands out absolute URLs pointing to
    a different host (pNN-caldav.icloud.com); those are used as given.
    """
    href_url = URL.objectify(href)
    if href_url.hostname:
        return href_url
    return URL.objectify(base).join(href_url)


class ICloudCalendar:
    """
    CalDAV session towards iCloud.

    Unless you have special needs, the constructor and the four
    operations are all you need::

        icloud = ICloudCalendar("someone@icloud.com", "abcd-efgh-ijkl-mnop")
        for calendar in icloud.list_calendars():
            print(calendar.name, calendar.url)
    """

    def __init__(
        self,
        username: str,
        app_specific_password: str,
        url: str = ICLOUD_URL,
        timeout: Optional[int] = None,
        ssl_verify_cert: Union[bool, str] = True,
        client_factory: Optional[Callable[[], DAVClient]] = None,
        uid_generator: Callable[[], str] = new_identifier,
        strict: bool = False,
    ) -> None:
        """
        Args:
          username: the Apple ID
          app_specific_password: generated at appleid.apple.com, the
            account password will not work
          url: the CalDAV root, iCloud redirects to the right pNN host
          timeout: passed on to requests, in seconds
          ssl_verify_cert: passed on to requests
          client_factory: a callable returning a ready DAVClient.  If
            given, it's used instead of building one from the parameters above.
          uid_generator: source of event UIDs and resource names
          strict: raise on malformed iCalendar data in ``list_events``
            rather than dropping it
        """
        self.username = username
        self._app_specific_password = app_specific_password
        self.url = url
        self.timeout = timeout
        self.ssl_verify_cert = ssl_verify_cert
        self.client_factory = client_factory
        self.uid_generator = uid_generator
        self.strict = strict

    def __repr__(self) -> str:
        return "ICloudCalendar(username=%r, url=%r)" % (self.username, self.url)

    def get_client(self) -> DAVClient:
        """
        Returns a new, authenticated DAVClient.  Called once per operation.
        """
        if self.client_factory is not None:
            return self.client_factory()
        return DAVClient(
            url=self.url,
            auth=HTTPBasicAuth(self.username, self._app_specific_password),
            timeout=self.timeout,
            ssl_verify_cert=self.ssl_verify_cert,
        )

    def create_event(
        self,
        calendar_url: str,
        summary: str,
        start: TimeStamp,
        end: TimeStamp,
        description: str = "",
        attendees: Iterable[Attendee] = (),
    ) -> str:
        """
        Stores a new event in the calendar.

        Args:
          calendar_url: URL of the calendar collection, with a trailing slash
          summary: the event title
          start, end: the timespan, naive datetimes are taken as UTC
          description: free text
          attendees: list of :class:`icloud_calendar.Attendee`

        Returns:
          the URL of the new event resource, needed for ``delete_event``
        """
        ical = encode_event(
            summary, description, start, end, attendees, uid=self.uid_generator()
        )
        event_url = calendar_url + self.uid_generator() + ".ics"

        log.debug("storing event %s", event_url)
        response = self.get_client().put(
            event_url, ical, {"Content-Type": CALENDAR_CONTENT_TYPE}
        )
        if _ok(response):
            return event_url
        raise error.EventCreationFailed(event_url, errmsg(response))

    def delete_event(self, event_url: str) -> None:
        log.debug("deleting event %s", event_url)
        response = self.get_client().delete(event_url)
        if response.status != 204:
            raise error.EventDeletionFailed(event_url, errmsg(response))

    def _propfind(
        self, client: DAVClient, url: URL, props: Sequence[BaseElement], depth: int
    ) -> DAVResponse:
        root = dav.Propfind() + (dav.Prop() + props)
        log.debug("propfind depth=%i on %s", depth, url)
        response = client.propfind(str(url), _to_xml(root), depth)
        if not _ok(response):
            raise error.CalendarDiscoveryFailed(str(url), errmsg(response))
        return response

    def _find_href(self, client: DAVClient, url: URL, prop: BaseElement) -> URL:
        """
        Looks up a single href-valued property (like
        current-user-principal) and resolves it to an URL
        """
        response = self._propfind(client, url, [prop], depth=0)
        properties = response.expand_simple_props(props=[prop])
        for found in properties.values():
            value = found.get(prop.tag)
            if value:
                return _join(url, value)
        raise error.CalendarDiscoveryFailed(str(url), f"{prop.tag} not found")

    def list_calendars(self) -> List[Calendar]:
        """
        Finds the calendars of the account.  This takes three round trips:

        1) the current-user-principal of the root URL
        2) the calendar-home-set of the principal
        3) the children of the calendar home set, keeping only those
           with the calendar resource type
        """
        client = self.get_client()
        principal_url = self._find_href(
            client, URL.objectify(client.url), dav.CurrentUserPrincipal()
        )
        home_set_url = self._find_href(client, principal_url, cdav.CalendarHomeSet())

        response = self._propfind(
            client, home_set_url, [dav.ResourceType(), dav.DisplayName()], depth=1
        )
        properties = response.expand_simple_props(
            props=[dav.DisplayName()], multi_value_props=[dav.ResourceType()]
        )

        calendars = []
        for path, found in properties.items():
            resource_types = found.get(dav.ResourceType.tag) or []
            if cdav.Calendar.tag not in resource_types:
                continue
            ## expand_simple_props unquotes the hrefs
            url = _join(home_set_url, quote(path))
            calendars.append(
                Calendar(url=str(url), name=found.get(dav.DisplayName.tag) or "")
            )
        log.debug("found %i calendars under %s", len(calendars), home_set_url)
        return calendars

    def _build_events_query(self, start: TimeStamp, end: TimeStamp) -> BaseElement:
        prop = dav.Prop() + [dav.GetEtag(), cdav.CalendarData()]
        vevent = cdav.CompFilter("VEVENT") + cdav.TimeRange(to_utc(start), to_utc(end))
        vcalendar = cdav.CompFilter("VCALENDAR") + vevent
        return cdav.CalendarQuery() + [prop, cdav.Filter() + vcalendar]

    def list_events(
        self, calendar_url: str, start: TimeStamp, end: TimeStamp
    ) -> List[Event]:
        """
        Fetches the events of a calendar overlapping the given timespan.

        Recurring events are not expanded, a recurring event is
        returned once, as stored on the server.
        """
        query = _to_xml(self._build_events_query(start, end))
        log.debug("calendar-query on %s", calendar_url)
        response = self.get_client().report(calendar_url, query, depth=1)
        if not _ok(response):
            raise error.EventFetchFailed(calendar_url, errmsg(response))

        if response.tree is None:
            return []
        fragments = [
            elem.text or ""
            for elem in response.tree.iter(cdav.CalendarData.tag)
        ]
        return parse_calendar_data(fragments, strict=self.strict)
