from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

MAX_SEEN_IDS = 500


class ListFilters(BaseModel):
    include_trash: bool = False
    sort_by: Literal["created_at", "updated_at", "filename"] = "created_at"
    descending: bool = True

    def to_query(self) -> dict:
        """Query params understood by the recording list endpoint."""
        return {
            "is_trash": 1 if self.include_trash else 0,
            "sort_by": self.sort_by,
            "is_desc": 1 if self.descending else 0,
        }


class TriggerState(BaseModel):
    """Persisted poll state of one trigger instance."""

    seenIds: List[str] = Field(default_factory=list)
    lastPollTime: Optional[int] = None  # epoch milliseconds

    @field_validator("seenIds", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        """Record ids may come back as numbers; the seen-set compares strings."""
        if v is None:
            return []
        return [str(i) for i in v]

    @field_validator("seenIds")
    @classmethod
    def bound_seen_ids(cls, v):
        return v[:MAX_SEEN_IDS]


@dataclass
class UnwrappedEnvelope:
    """Records extracted from an API response, and whether its shape was recognized."""
    records: List[Any]
    recognized: bool
    raw: Any = None


@dataclass
class BinaryData:
    data: bytes
    file_name: str
    mime_type: str

    @property
    def file_size(self) -> int:
        return len(self.data)


@dataclass
class ExecutionItem:
    """One output item of an action or a poll cycle."""
    json: Dict[str, Any]
    binary: Dict[str, BinaryData] = field(default_factory=dict)
    paired_item: Optional[int] = None
