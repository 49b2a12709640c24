import pytest
import requests

from plaud_api import PlaudApi
from plaud_trigger import PlaudTrigger, PollError
from state_store import InMemoryStateStore

from conftest import FakeConnection, PagedRecordings, make_recordings

TRIGGER_ID = "plaud-trigger"


class Upstream:
    """Recording list whose contents the test can replace between polls."""

    def __init__(self, ids=()):
        self.set(*ids)

    def set(self, *ids):
        self.pages = PagedRecordings(make_recordings(*ids), envelope_key="data")

    def __call__(self, params):
        return self.pages(params)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def trigger_connection(upstream):
    return FakeConnection({PlaudApi.RECORDINGS_PATH: upstream})


def make_trigger(connection, state_store, max_recordings=10):
    return PlaudTrigger(PlaudApi(connection), state_store, TRIGGER_ID, max_recordings=max_recordings)


def emitted_ids(items):
    return [item.json["id"] for item in items]


def test_new_recording_is_emitted_after_baseline(upstream, trigger_connection, state_store):
    trigger = make_trigger(trigger_connection, state_store, max_recordings=10)
    ids = [f"r{i}" for i in range(1, 16)]

    upstream.set(*ids)
    assert trigger.poll() is None
    assert state_store.load(TRIGGER_ID)["seenIds"] == ids

    upstream.set("r0", *ids)
    items = trigger.poll()

    assert emitted_ids(items) == ["r0"]
    assert items[0].json["filename"] == "Recording r0"


def test_fetch_asks_for_twice_max_newest_first(upstream, trigger_connection, state_store):
    upstream.set(*range(100))

    make_trigger(trigger_connection, state_store, max_recordings=10).poll()

    params = trigger_connection.calls[0]["params"]
    assert params["limit"] == 20
    assert params["is_trash"] == 0
    assert params["sort_by"] == "created_at"
    assert params["is_desc"] == 1
    assert len(trigger_connection.calls) == 1


def test_repeated_polls_without_changes_emit_nothing(upstream, trigger_connection, state_store):
    trigger = make_trigger(trigger_connection, state_store)
    upstream.set("a", "b", "c")

    assert trigger.poll() is None
    assert trigger.poll() is None
    assert trigger.poll() is None


def test_empty_upstream_emits_nothing_and_keeps_first_run(trigger_connection, state_store):
    trigger = make_trigger(trigger_connection, state_store)

    assert trigger.poll() is None
    assert trigger.tracker.is_first_run()


def test_new_recordings_are_capped_and_newest_first(upstream, trigger_connection, state_store):
    trigger = make_trigger(trigger_connection, state_store, max_recordings=3)
    upstream.set("a", "b")
    trigger.poll()

    upstream.set("f", "e", "d", "c", "a", "b")
    items = trigger.poll()

    assert emitted_ids(items) == ["f", "e", "d"]
    # Everything fetched counts as seen, including what was cut off
    assert trigger.poll() is None


def test_numeric_ids_are_tracked(trigger_connection, state_store, upstream):
    trigger = make_trigger(trigger_connection, state_store)
    upstream.set(1, 2)
    trigger.poll()

    upstream.set(3, 1, 2)

    assert emitted_ids(trigger.poll()) == [3]


def test_manual_poll_returns_latest_and_leaves_state(upstream, trigger_connection, state_store):
    trigger = make_trigger(trigger_connection, state_store)
    upstream.set("x", "y", "z")

    items = trigger.poll(manual=True)

    assert emitted_ids(items) == ["x"]
    assert state_store.load(TRIGGER_ID) is None


def test_manual_poll_ignores_seen_set(upstream, trigger_connection, state_store):
    trigger = make_trigger(trigger_connection, state_store)
    upstream.set("x", "y")
    trigger.poll()
    before = state_store.load(TRIGGER_ID)

    assert emitted_ids(trigger.poll(manual=True)) == ["x"]
    assert state_store.load(TRIGGER_ID) == before


def test_manual_poll_with_no_recordings(trigger_connection, state_store):
    assert make_trigger(trigger_connection, state_store).poll(manual=True) is None


def test_fetch_failure_is_wrapped(state_store):
    connection = FakeConnection({PlaudApi.RECORDINGS_PATH: requests.ConnectionError("connection refused")})
    trigger = make_trigger(connection, state_store)

    with pytest.raises(PollError, match="^Failed to poll Plaud API: connection refused") as exc_info:
        trigger.poll()

    assert isinstance(exc_info.value.__cause__, requests.ConnectionError)
    assert state_store.load(TRIGGER_ID) is None


def test_records_without_id_are_not_emitted(state_store):
    responses = iter([
        [{"id": "a"}],
        [{"name": "no id"}, {"id": "b"}, {"id": "a"}],
    ])
    connection = FakeConnection({PlaudApi.RECORDINGS_PATH: lambda params: next(responses)})
    trigger = make_trigger(connection, state_store)

    trigger.poll()

    assert emitted_ids(trigger.poll()) == ["b"]


@pytest.mark.parametrize("max_recordings", [0, 101])
def test_max_recordings_is_validated(trigger_connection, state_store, max_recordings):
    with pytest.raises(ValueError):
        make_trigger(trigger_connection, state_store, max_recordings=max_recordings)


class ReadOnlyStore(InMemoryStateStore):
    """Holds existing state but cannot persist changes."""

    def save(self, key, state):
        raise OSError("read-only file system")


def test_state_write_failure_fails_the_cycle(upstream, trigger_connection):
    store = ReadOnlyStore({TRIGGER_ID: {"seenIds": ["a"], "lastPollTime": 1}})
    trigger = make_trigger(trigger_connection, store)
    upstream.set("b", "a")

    for _ in range(2):
        with pytest.raises(PollError, match="read-only file system"):
            trigger.poll()

    assert store.load(TRIGGER_ID)["seenIds"] == ["a"]


def test_first_fetch_without_ids_stores_no_baseline(state_store):
    responses = iter([
        [{"name": "x"}],
        [{"id": "a"}, {"name": "x"}],
        [{"id": "b"}, {"id": "a"}],
    ])
    connection = FakeConnection({PlaudApi.RECORDINGS_PATH: lambda params: next(responses)})
    trigger = make_trigger(connection, state_store)

    assert trigger.poll() is None
    assert state_store.load(TRIGGER_ID) is None

    assert trigger.poll() is None
    assert state_store.load(TRIGGER_ID)["seenIds"] == ["a"]

    assert emitted_ids(trigger.poll()) == ["b"]
