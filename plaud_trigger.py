"""
Plaud polling trigger.

Each poll cycle fetches the newest recordings and compares their ids against the
seen-set persisted for this trigger instance:

- no recordings upstream: nothing to report
- manual (test) poll: report the newest recording, leave the state alone
- first poll: remember what is there, report nothing
- later polls: report recordings whose id was not seen before, newest first

Polls for one trigger instance must not overlap; the scheduler guarantees that.
"""

from typing import List, Optional

from models import ExecutionItem, ListFilters
from plaud_api import PlaudApi
from state_store import SeenSetTracker
from tools import logger


class PollError(Exception):
    """A poll cycle failed as a whole; nothing was emitted."""


def record_id(record) -> Optional[str]:
    if not isinstance(record, dict) or record.get("id") is None:
        return None
    return str(record["id"])


class PlaudTrigger(object):
    """Emits recordings that are new since the previous poll."""

    DEFAULT_MAX_RECORDINGS = 10
    MAX_RECORDINGS_LIMIT = 100
    # Fetch more than we emit so that enough unseen recordings remain after filtering
    FETCH_MULTIPLIER = 2

    NEWEST_FIRST = ListFilters(include_trash=False, sort_by="created_at", descending=True)

    def __init__(self, plaud_api: PlaudApi, state_store, trigger_id: str, max_recordings: int = DEFAULT_MAX_RECORDINGS):
        if not 1 <= max_recordings <= self.MAX_RECORDINGS_LIMIT:
            raise ValueError(f"max_recordings must be between 1 and {self.MAX_RECORDINGS_LIMIT}, got {max_recordings}")

        self._plaud_api = plaud_api
        self._tracker = SeenSetTracker(state_store, trigger_id)
        self._trigger_id = trigger_id
        self._max_recordings = max_recordings

    @property
    def tracker(self):
        return self._tracker

    def poll(self, manual: bool = False) -> Optional[List[ExecutionItem]]:
        """
        Run one poll cycle.

        Args:
            manual: Test invocation; returns the newest recording without touching the seen-set

        Returns:
            None when there is nothing to emit, otherwise one item per new recording

        Raises:
            PollError: fetching or updating state failed
        """
        try:
            return self._poll(manual)
        except Exception as e:
            raise PollError(f"Failed to poll Plaud API: {e}") from e

    def _poll(self, manual):
        recordings = self._plaud_api.fetch_records(
            self._max_recordings * self.FETCH_MULTIPLIER,
            filters=self.NEWEST_FIRST,
        )

        if not recordings:
            logger.info(f"[{self._trigger_id}] No recordings found")
            return None

        if manual:
            logger.info(f"[{self._trigger_id}] Manual poll, returning the latest recording")
            return [ExecutionItem(json=recordings[0])]

        current_ids = [i for i in map(record_id, recordings) if i is not None]

        if self._tracker.is_first_run():
            if not current_ids:
                logger.warning(f"[{self._trigger_id}] No recording ids in the response, baseline not stored")
                return None
            self._tracker.record_initial_snapshot(current_ids)
            return None

        new_ids = set(self._tracker.diff_and_update(current_ids))
        if not new_ids:
            logger.info(f"[{self._trigger_id}] No new recordings ({len(recordings)} checked)")
            return None

        # Adjacent pages can overlap when recordings arrive mid-fetch
        new_recordings = []
        for recording in recordings:
            rid = record_id(recording)
            if rid in new_ids:
                new_recordings.append(recording)
                new_ids.discard(rid)

        to_emit = new_recordings[:self._max_recordings]
        logger.info(f"[{self._trigger_id}] Found {len(new_recordings)} new recording(s), emitting {len(to_emit)}")

        return [ExecutionItem(json=recording) for recording in to_emit]
