"""Shared fakes: a scripted Plaud connection and an in-memory trigger state."""

import pytest

from plaud_api import PlaudApi
from state_store import InMemoryStateStore


def make_recordings(*ids):
    return [{"id": rid, "filename": f"Recording {rid}", "duration": 60000} for rid in ids]


class FakeConnection:
    """
    Stands in for PlaudConnection.

    `responses` maps a path to either a list of responses (returned in order, the
    last one repeated) or a callable taking the request params.
    """

    def __init__(self, responses=None, files=None):
        self.responses = dict(responses or {})
        self.files = dict(files or {})
        self.calls = []
        self.downloads = []

    def request(self, method, path, params=None, json=None):
        self.calls.append({"method": method, "path": path, "params": params, "json": json})
        response = self.responses[path]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params)
        index = min(len([c for c in self.calls if c["path"] == path]) - 1, len(response) - 1)
        return response[index]

    def download(self, url):
        self.downloads.append(url)
        return self.files[url]


class PagedRecordings:
    """Serves the recording list endpoint from a fixed list, honouring skip/limit."""

    def __init__(self, recordings, envelope_key="list"):
        self.recordings = recordings
        self.envelope_key = envelope_key

    def __call__(self, params):
        page = self.recordings[params["skip"]:params["skip"] + params["limit"]]
        return {"status": 0, self.envelope_key: page}


@pytest.fixture
def state_store():
    return InMemoryStateStore()


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def plaud_api(connection):
    return PlaudApi(connection)
