"""
Persisted poll state and seen-set tracking.

The trigger keeps the ids of recordings it has already looked at so that each
poll only reports recordings that arrived since the previous one. The state is
a small JSON-compatible dict per trigger instance:

    {"seenIds": ["<id>", ...], "lastPollTime": <epoch ms>}

Storage is injected: JsonFileStateStore keeps every instance's state in one JSON
file under DATA_DIR, InMemoryStateStore is used by tests and manual runs.
Reads and writes are not locked; one poll per trigger instance at a time.
"""

import datetime
import json
import os

from models import MAX_SEEN_IDS, TriggerState
from tools import logger


def now_ms() -> int:
    return int(datetime.datetime.now(datetime.timezone.utc).timestamp() * 1000)


class InMemoryStateStore(object):

    def __init__(self, initial=None):
        self._data = dict(initial or {})

    def load(self, key):
        state = self._data.get(key)
        return dict(state) if state is not None else None

    def save(self, key, state):
        self._data[key] = dict(state)


class JsonFileStateStore(object):
    """State of all trigger instances in a single JSON file, keyed by trigger id."""

    def __init__(self, path):
        self._path = path
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    @property
    def path(self):
        return self._path

    def _read_all(self):
        if not os.path.exists(self._path):
            return {}

        try:
            with open(self._path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not load trigger state file: {e}, starting fresh")
            return {}

        if not isinstance(data, dict):
            logger.warning("Trigger state file does not hold an object, starting fresh")
            return {}
        return data

    def load(self, key):
        return self._read_all().get(key)

    def save(self, key, state):
        try:
            data = self._read_all()
            data[key] = state
            with open(self._path, 'w') as f:
                json.dump(data, f, indent=2)
        except (OSError, TypeError) as e:
            logger.error(f"Could not save trigger state file: {e}")
            raise


class SeenSetTracker(object):
    """
    Tracks which recording ids one trigger instance has already seen.

    The seen-set is bounded to MAX_SEEN_IDS entries; when trimming, ids from the
    latest snapshot are kept ahead of older ones.
    """

    def __init__(self, store, key, clock=now_ms):
        self._store = store
        self._key = key
        self._clock = clock

    def load_state(self) -> TriggerState:
        raw = self._store.load(self._key)
        if not raw:
            return TriggerState()
        return TriggerState(**raw)

    def _save_state(self, state: TriggerState):
        self._store.save(self._key, state.model_dump())

    @property
    def seen_ids(self):
        return self.load_state().seenIds

    def is_first_run(self) -> bool:
        return not self.load_state().seenIds

    def record_initial_snapshot(self, current_ids):
        """Store the current ids as the baseline. Nothing is reported on this cycle."""
        self._save_state(TriggerState(seenIds=list(current_ids), lastPollTime=self._clock()))
        logger.info(f"Stored baseline of {len(current_ids)} recording id(s)")

    def diff_and_update(self, current_ids):
        """
        Compute ids not seen before and fold the snapshot into the seen-set.

        Args:
            current_ids: Ids of the latest fetch, newest first

        Returns:
            New ids, in `current_ids` order
        """
        state = self.load_state()
        seen = set(state.seenIds)
        new_ids = [i for i in current_ids if i not in seen]

        combined = list(dict.fromkeys(list(current_ids) + state.seenIds))
        self._save_state(TriggerState(seenIds=combined[:MAX_SEEN_IDS], lastPollTime=self._clock()))
        return new_ids
