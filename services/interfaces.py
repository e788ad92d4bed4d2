"""Collaborator contracts consumed by the checkup engine.

Storage, text generation and decomposition live outside the engine; these
protocols are the only surface it depends on.
"""
from typing import Any, Dict, List, Optional, Protocol

from models.checkup import CheckupItem, ItemKind, LogStatus
from models.tracking import LevelUp, LogEntry, LogOutcome, ProposedItem, TrackedRecord


class ItemRecordSource(Protocol):
    def fetch_active_records(self, user_id: str) -> List[TrackedRecord]: ...

    def user_timezone(self, user_id: str) -> Optional[str]: ...


class LogSink(Protocol):
    def log_item(
        self,
        user_id: str,
        item_id: str,
        kind: ItemKind,
        status: LogStatus,
        value: Optional[float] = None,
        note: Optional[str] = None,
    ) -> LogOutcome:
        """Same status inside the idempotency window is a no-op; a different one updates the last entry."""
        ...


class HistorySource(Protocol):
    def recent_log_entries(self, user_id: str, item_id: str, limit: int) -> List[LogEntry]:
        """Most recent first."""
        ...


class PlanStore(Protocol):
    def check_level_up(self, user_id: str, item_id: str) -> Optional[LevelUp]: ...

    def activate_next_item(self, user_id: str, item_id: str) -> Optional[TrackedRecord]: ...

    def increase_weekly_target(self, user_id: str, item_id: str, day: Optional[str] = None) -> int: ...

    def create_sub_item(self, user_id: str, parent_id: str, proposal: ProposedItem) -> str: ...


class Narrator(Protocol):
    def narrate(self, scenario: str, data: Dict[str, Any]) -> str: ...


class Decomposer(Protocol):
    def propose_smaller_version(self, item: CheckupItem, blocker: str) -> ProposedItem: ...
