"""Records exchanged with the persistence collaborators."""
from typing import Optional, Tuple
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from models.checkup import ItemKind, ValueKind


class RecordStatus(Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class LogWrite(Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"    # same status inside the idempotency window


@dataclass
class TrackedRecord:
    """A raw tracked item as the item source stores it."""
    id: str
    kind: ItemKind
    title: str
    description: str = ""
    status: RecordStatus = RecordStatus.ACTIVE
    value_kind: ValueKind = ValueKind.BOOLEAN
    is_habit: bool = False
    target_reps: Optional[int] = None
    current_reps: int = 0
    last_performed_at: Optional[datetime] = None   # last completion, drives weekly reps
    last_checked_at: Optional[datetime] = None     # last confirmation of any status
    scheduled_days: Tuple[str, ...] = ()
    time_of_day: Optional[str] = None
    unit: Optional[str] = None
    current_value: Optional[float] = None
    target_value: Optional[float] = None
    plan_position: int = 0
    parent_id: Optional[str] = None


@dataclass
class LogEntry:
    """One persisted outcome, as returned by the history source."""
    status: str
    day: date
    performed_at: Optional[datetime] = None
    value: Optional[float] = None
    note: Optional[str] = None


@dataclass
class LogOutcome:
    write: LogWrite
    weekly_count: Optional[int] = None
    total_count: Optional[int] = None
    previous_value: Optional[float] = None

    @property
    def is_duplicate(self) -> bool:
        return self.write == LogWrite.SKIPPED


@dataclass
class LevelUp:
    """Result of a lifetime-target check for a non-habit action."""
    completed_item_id: str
    completed_title: str
    next_item_id: Optional[str] = None
    next_title: Optional[str] = None


@dataclass
class ProposedItem:
    """A smaller version of an item, as returned by the decomposer."""
    title: str
    description: str = ""
    tip: str = ""

    def to_dict(self) -> dict:
        return {"title": self.title, "description": self.description, "tip": self.tip}

    @classmethod
    def from_dict(cls, data: dict) -> "ProposedItem":
        return cls(
            title=str(data.get("title") or "").strip(),
            description=str(data.get("description") or "").strip(),
            tip=str(data.get("tip") or "").strip(),
        )
