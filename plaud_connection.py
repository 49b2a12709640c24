"""
Plaud API connection.

Holds the bearer token and the regional base URL and performs authenticated
requests against the Plaud cloud API.

Key responsibilities:
- Region selection (EU / US / APAC endpoints, or an explicit base URL)
- Bearer token authentication on every API call
- Plain (unauthenticated) downloads of pre-signed file URLs
- Credential check against the device list endpoint
"""

import requests

from tools import logger, VERBOSE


class PlaudConnection(object):
    """
    Authenticated connection to one Plaud API region.

    The Plaud web app uses a JWT bearer token; the same token works against every
    endpoint used here. Nothing is retried: errors surface as requests exceptions
    and the caller decides what to do with them.
    """

    NAME = "Plaud"

    REGIONS = {
        "eu": "https://api-euc1.plaud.ai",
        "us": "https://api.plaud.ai",
        "apac": "https://api-apac.plaud.ai",
    }
    DEFAULT_REGION = "eu"

    CREDENTIAL_TEST_PATH = "/device/list"
    REQUEST_TIMEOUT = 30

    def __init__(self, bearer_token, region=DEFAULT_REGION, session=None):
        if not bearer_token:
            raise ValueError("A Plaud bearer token is required")

        # Users often paste the whole header value
        if bearer_token.lower().startswith("bearer "):
            bearer_token = bearer_token[len("bearer "):]

        self._bearer_token = bearer_token.strip()
        self._base_url = self.resolve_base_url(region)
        self._session = session or requests.Session()

    @classmethod
    def resolve_base_url(cls, region):
        """
        Map a region name (eu, us, apac) or an explicit URL to a base URL.

        Unknown names fall back to the default region.
        """
        if not region:
            return cls.REGIONS[cls.DEFAULT_REGION]

        region = region.strip()
        if region.startswith("http://") or region.startswith("https://"):
            return region.rstrip("/")

        base_url = cls.REGIONS.get(region.lower())
        if base_url is None:
            logger.warning(f"Unknown PLAUD_REGION '{region}', using '{cls.DEFAULT_REGION}'")
            return cls.REGIONS[cls.DEFAULT_REGION]
        return base_url

    @property
    def base_url(self):
        return self._base_url

    def request(self, method: str, path: str, params=None, json=None):
        """
        Make authenticated request to the Plaud API.

        Args:
            method: HTTP method (GET, PATCH, ...)
            path: Endpoint path relative to the region base URL
            params: Query parameters
            json: JSON body

        Returns:
            Parsed JSON response
        """
        url = f"{self._base_url}{path}"
        logger.debug(f"Sending {method} request to: '{url}' with params: '{params}'")

        res = self._session.request(
            method,
            url,
            params=params,
            json=json,
            headers={
                "Authorization": f"Bearer {self._bearer_token}"
            },
            timeout=self.REQUEST_TIMEOUT,
        )
        res.raise_for_status()

        if VERBOSE:
            logger.debug(f"Response from '{url}': {res.text}")

        return res.json()

    def download(self, url: str) -> bytes:
        """
        Fetch a pre-signed file URL.

        The URL carries its own signature, so no Authorization header is sent.
        """
        logger.debug(f"Downloading file from: '{url}'")
        res = self._session.get(url, timeout=self.REQUEST_TIMEOUT)
        res.raise_for_status()
        return res.content

    def test_credentials(self) -> bool:
        """Check the token against the device list endpoint."""
        try:
            self.request("GET", self.CREDENTIAL_TEST_PATH)
            return True
        except requests.RequestException as e:
            logger.error(f"Plaud credential check failed: {e}")
            return False
