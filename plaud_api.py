"""
Plaud cloud API client.

Wraps the recording and device endpoints of the Plaud API on top of a
PlaudConnection. The list endpoints have returned several different payload
shapes over time, so every list response goes through unwrap_envelope() instead
of being read from a fixed key.
"""

from typing import Any, List

from models import ListFilters, UnwrappedEnvelope
from tools import logger

RECORD_LIST_KEYS = ("list", "data", "files", "recordings", "items")
DEVICE_LIST_KEYS = ("data", "list")


def unwrap_envelope(envelope: Any, keys=RECORD_LIST_KEYS, scan: bool = True) -> UnwrappedEnvelope:
    """
    Extract the list of records from a list endpoint response.

    Rules, first match wins:
    1. the response is itself a list
    2. the response is an object with a list under one of `keys` (in that order)
    3. with `scan`, the first list-valued property of the object

    Args:
        envelope: Parsed JSON response
        keys: Known wrapper keys, highest priority first
        scan: Fall back to the first list-valued property

    Returns:
        UnwrappedEnvelope; `recognized` is False (and `records` empty) when no rule matched
    """
    if isinstance(envelope, list):
        return UnwrappedEnvelope(records=envelope, recognized=True, raw=envelope)

    if isinstance(envelope, dict):
        for key in keys:
            if isinstance(envelope.get(key), list):
                return UnwrappedEnvelope(records=envelope[key], recognized=True, raw=envelope)

        if scan:
            for value in envelope.values():
                if isinstance(value, list):
                    return UnwrappedEnvelope(records=value, recognized=True, raw=envelope)

    logger.debug(f"No record list found in response of type {type(envelope).__name__}")
    return UnwrappedEnvelope(records=[], recognized=False, raw=envelope)


def unwrap_records(envelope: Any) -> List[Any]:
    """Lenient view of unwrap_envelope(): unrecognized shapes read as no records."""
    return unwrap_envelope(envelope).records


class PlaudApi:
    """Client for the Plaud recording and device endpoints"""

    RECORDINGS_PATH = "/file/simple/web"
    DEVICES_PATH = "/device/list"
    TEMP_URL_PATH = "/file/temp-url/{recording_id}"
    FILE_PATH = "/file/{recording_id}"

    DEFAULT_PAGE_SIZE = 50
    # Upper bound on list requests per fetch, in case upstream never returns a short page
    MAX_PAGES = 200

    def __init__(self, connection):
        """
        Args:
            connection: PlaudConnection (or anything with the same request() signature)
        """
        self._connection = connection

    def fetch_page(self, skip: int, limit: int, filters: ListFilters) -> List[Any]:
        params = {"skip": skip, "limit": limit, **filters.to_query()}
        return unwrap_records(self._connection.request("GET", self.RECORDINGS_PATH, params=params))

    def fetch_records(self, target: int, page_size: int = DEFAULT_PAGE_SIZE, filters: ListFilters = None) -> List[Any]:
        """
        Fetch up to `target` recordings, one page at a time.

        Pages are requested sequentially with a growing `skip` offset. Fetching
        stops when a page comes back shorter than requested (no more data upstream)
        or once `target` records have been collected. Order is the API's order;
        sorting is done upstream through `filters`.

        Args:
            target: Maximum number of records to return
            page_size: Records requested per page
            filters: Trash / sort options sent with every page request

        Returns:
            At most `target` records
        """
        if target < 1 or page_size < 1:
            raise ValueError(f"target and page_size must be positive (got {target}, {page_size})")

        filters = filters or ListFilters()
        records = []
        skip = 0

        for page in range(self.MAX_PAGES):
            requested = min(page_size, target - len(records))
            batch = self.fetch_page(skip, requested, filters)
            records.extend(batch)
            logger.debug(f"Page {page + 1}: got {len(batch)}/{requested} recordings (skip={skip})")
            skip += page_size

            if len(batch) < requested or len(records) >= target:
                break
        else:
            logger.warning(f"Stopped fetching recordings after {self.MAX_PAGES} pages without reaching the end")

        return records[:target]

    def list_devices(self) -> UnwrappedEnvelope:
        """
        List devices linked to the account.

        Only the `data` and `list` wrappers are known for this endpoint; any other
        shape comes back unrecognized so the caller can pass the raw payload on.
        """
        envelope = self._connection.request("GET", self.DEVICES_PATH)
        return unwrap_envelope(envelope, keys=DEVICE_LIST_KEYS, scan=False)

    def get_temp_urls(self, recording_id: str, opus: bool = False) -> dict:
        """
        Get temporary download URLs for a recording.

        Returns:
            Response object; holds `temp_url` and, when requested, `temp_url_opus`
        """
        return self._connection.request(
            "GET",
            self.TEMP_URL_PATH.format(recording_id=recording_id),
            params={"is_opus": 1 if opus else 0},
        )

    def update_filename(self, recording_id: str, filename: str) -> dict:
        return self._connection.request(
            "PATCH",
            self.FILE_PATH.format(recording_id=recording_id),
            json={"filename": filename},
        )

    def download(self, url: str) -> bytes:
        return self._connection.download(url)
