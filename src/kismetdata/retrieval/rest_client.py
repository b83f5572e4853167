"""Kismet REST API reader."""

import json
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlparse

import requests

from kismetdata.errors import (
    AuthenticationError,
    BackendConnectionError,
    ConfigurationError,
    ParseError,
)
from kismetdata.models import Record, RestFilter, RestSettings
from kismetdata.parsing.filters import build_rest_filter, parse_rest_filter
from kismetdata.reader import RecordReader
from kismetdata.utils.logging import get_logger

logger = get_logger(__name__)

SESSION_CHECK_PATH = "/session/check_session"
DEVICES_PATH = "/devices/views/{view}/devices.json"

IDENTIFIER_FIELDS = (
    "kismet.device.base.macaddr",
    "kismet.device.base.key",
    "kismet.device.base.name",
)
LOCATION_FIELD = "kismet.device.base.location"
AVG_LOCATION_FIELD = "kismet.common.location.avg_loc"
GEOPOINT_FIELD = "kismet.common.location.geopoint"


def validate_rest_url(url: str) -> str:
    """
    Check that ``url`` is an http(s) URL with a host.

    Returns:
        The URL without a trailing slash

    Raises:
        ConfigurationError: If the URL can't be parsed or uses another scheme
    """
    try:
        parsed = urlparse(url or "")
        parsed.port  # raises on a non-numeric or out-of-range port
    except ValueError as e:
        raise ConfigurationError(f"Failed to parse url {url!r}: {e}") from e
    if parsed.scheme not in ("http", "https"):
        logger.debug(f"URL does not appear to have http or https protocol: {parsed.scheme!r}")
        raise ConfigurationError("Please enter a valid `http` or `https` url")
    if not parsed.netloc:
        raise ConfigurationError(f"URL has no host: {url!r}")
    return url.rstrip("/")


def _find_geopoint(entry: Dict[str, Any]) -> Optional[Any]:
    if GEOPOINT_FIELD in entry:
        return entry[GEOPOINT_FIELD]
    location = entry.get(LOCATION_FIELD)
    if isinstance(location, dict):
        avg_loc = location.get(AVG_LOCATION_FIELD)
        if isinstance(avg_loc, dict):
            return avg_loc.get(GEOPOINT_FIELD)
    return None


def decode_device(entry: Any) -> Record:
    """
    Decode one device entity from a devices.json response.

    Kismet geopoints are ``[lon, lat]``. Devices without a location decode
    with 0.0 coordinates.
    """
    if not isinstance(entry, dict):
        raise ParseError(f"Device entry must be an object, got {type(entry).__name__}")

    identifier = ""
    for field in IDENTIFIER_FIELDS:
        value = entry.get(field)
        if value not in (None, ""):
            identifier = str(value)
            break

    latitude = longitude = 0.0
    geopoint = _find_geopoint(entry)
    if geopoint not in (None, 0):
        if not isinstance(geopoint, (list, tuple)) or len(geopoint) != 2:
            raise ParseError(f"Malformed geopoint for device {identifier!r}: {geopoint!r}")
        try:
            longitude, latitude = float(geopoint[0]), float(geopoint[1])
        except (TypeError, ValueError) as e:
            raise ParseError(f"Malformed geopoint for device {identifier!r}: {geopoint!r}") from e

    return Record(identifier=identifier, latitude=latitude, longitude=longitude)


class KismetRestClient(RecordReader):
    """Reads device records from a live Kismet server, one page at a time."""

    backend = "rest"

    def __init__(
        self,
        base_url: str,
        session: requests.Session,
        query: RestFilter,
        settings: Optional[RestSettings] = None,
    ):
        super().__init__()
        self.base_url = base_url
        self.query = query
        self.settings = settings or RestSettings()
        self._session = session

    @classmethod
    def open(
        cls,
        url: str,
        username: str,
        password: str,
        filters: Union[str, Sequence[str], RestFilter],
        *,
        settings: Optional[RestSettings] = None,
        session: Optional[requests.Session] = None,
    ) -> "KismetRestClient":
        """
        Validate inputs, log in and return a ready client.

        The URL, filters and credentials are all checked before any request
        is made.

        Raises:
            ConfigurationError: Bad URL, empty filters or missing credentials
            AuthenticationError: The server rejected the credentials
            BackendConnectionError: The server could not be reached
        """
        base_url = validate_rest_url(url)
        if isinstance(filters, RestFilter):
            query = filters
        elif isinstance(filters, str):
            query = parse_rest_filter(filters)
        else:
            query = build_rest_filter(filters)
        if not username or not password:
            raise ConfigurationError("You must specify a username and password!")

        settings = settings or RestSettings()
        session = session if session is not None else requests.Session()
        session.auth = (username, password)
        session.headers.update({"User-Agent": settings.user_agent, "Accept": "application/json"})

        client = cls(base_url, session, query, settings)
        try:
            client._check_session()
        except Exception:
            client.finish()
            raise
        logger.info(f"Connected to Kismet at {base_url}")
        return client

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self.settings.timeout_seconds, **kwargs)
        except requests.RequestException as e:
            raise BackendConnectionError(f"Failed to reach {url}: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(f"Kismet rejected credentials ({response.status_code})")
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            if response.status_code == 400 and path != SESSION_CHECK_PATH:
                raise ConfigurationError(f"Kismet rejected the query: {e}") from e
            raise BackendConnectionError(f"Request to {url} failed: {e}") from e
        return response

    def _check_session(self) -> None:
        logger.debug(f"Checking session at {self.base_url}{SESSION_CHECK_PATH}")
        self._request("GET", SESSION_CHECK_PATH)

    def _fetch_page(self, page_index: int) -> Tuple[List[Any], bool]:
        """
        Fetch one datatable page.

        Returns:
            (entries, is_last) for the page
        """
        page_size = self.settings.page_size
        start = page_index * page_size
        body = {
            "fields": list(self.query.fields),
            "datatable": True,
            "start": start,
            "length": page_size,
        }
        path = DEVICES_PATH.format(view=self.settings.device_view)
        response = self._request("POST", path, data={"json": json.dumps(body)})

        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError(f"Kismet returned invalid JSON for page {page_index}: {e}") from e

        # Non-datatable endpoints return every device in one array
        if isinstance(payload, list):
            return payload, True
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            raise ParseError(f"Unexpected devices response shape for page {page_index}")

        total = payload.get("recordsFiltered", payload.get("recordsTotal"))
        if total is None:
            return payload["data"], True
        try:
            is_last = start + page_size >= int(total)
        except (TypeError, ValueError) as e:
            raise ParseError(f"Invalid record count {total!r} in devices response") from e
        logger.debug(f"Page {page_index}: {len(payload['data'])} devices (start={start}, total={total})")
        return payload["data"], is_last

    def _iter_records(self) -> Iterator[Record]:
        first_page = self._fetch_page(0)
        return self._generate(first_page)

    def _generate(self, page: Tuple[List[Any], bool]) -> Iterator[Record]:
        page_index = 0
        entries, is_last = page
        while True:
            for entry in entries:
                yield decode_device(entry)
            if is_last:
                return
            page_index += 1
            entries, is_last = self._fetch_page(page_index)

    def _release(self) -> None:
        self._session.close()
