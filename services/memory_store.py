"""In-memory tracking store.

Reference implementation of every persistence contract the checkup engine
consumes (item records, log sink, history, plan operations). Used by tests
and local runs; a production deployment plugs its own database behind the
same methods.

Log idempotency: inside the idempotency window, logging an item with the
same status is skipped and a different status updates the most recent entry.
"""
import itertools
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from config.settings import DEFAULT_TIMEZONE, IDEMPOTENCY_WINDOW_HOURS, MAX_WEEKLY_FREQUENCY
from models.checkup import ItemKind, LogStatus
from models.tracking import (
    LevelUp,
    LogEntry,
    LogOutcome,
    LogWrite,
    ProposedItem,
    RecordStatus,
    TrackedRecord,
)
from tools import dates

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _StoredEntry:
    status: str
    performed_at: datetime
    value: Optional[float] = None
    note: Optional[str] = None


class InMemoryTrackingStore:
    """Dict-backed store keyed by user id."""

    def __init__(
        self,
        clock: Callable[[], datetime] = _utc_now,
        idempotency_window_hours: int = IDEMPOTENCY_WINDOW_HOURS,
        max_weekly_frequency: int = MAX_WEEKLY_FREQUENCY,
        default_timezone: str = DEFAULT_TIMEZONE,
    ):
        self.clock = clock
        self.idempotency_window = timedelta(hours=idempotency_window_hours)
        self.max_weekly_frequency = max_weekly_frequency
        self.default_timezone = default_timezone
        self._records: Dict[str, Dict[str, TrackedRecord]] = {}
        self._entries: Dict[Tuple[str, str], List[_StoredEntry]] = {}
        self._timezones: Dict[str, str] = {}
        self._ids = itertools.count(1)

    # === Seeding ===

    def add_record(self, user_id: str, record: TrackedRecord) -> TrackedRecord:
        self._records.setdefault(user_id, {})[record.id] = record
        return record

    def get_record(self, user_id: str, item_id: str) -> TrackedRecord:
        try:
            return self._records[user_id][item_id]
        except KeyError:
            raise KeyError(f"Unknown item {item_id} for user {user_id}") from None

    def set_timezone(self, user_id: str, tz_name: str):
        self._timezones[user_id] = tz_name

    def add_entry(self, user_id: str, item_id: str, status: str, performed_at: datetime,
                  value: Optional[float] = None, note: Optional[str] = None):
        """Seed history directly, bypassing the idempotency guard."""
        self._entries.setdefault((user_id, item_id), []).append(
            _StoredEntry(status=status, performed_at=performed_at, value=value, note=note)
        )

    def entries_for(self, user_id: str, item_id: str) -> List[_StoredEntry]:
        return sorted(self._entries.get((user_id, item_id), []), key=lambda e: e.performed_at, reverse=True)

    # === ItemRecordSource ===

    def fetch_active_records(self, user_id: str) -> List[TrackedRecord]:
        return [replace(r) for r in self._records.get(user_id, {}).values() if r.status == RecordStatus.ACTIVE]

    def user_timezone(self, user_id: str) -> Optional[str]:
        return self._timezones.get(user_id)

    # === LogSink ===

    def log_item(
        self,
        user_id: str,
        item_id: str,
        kind: ItemKind,
        status: LogStatus,
        value: Optional[float] = None,
        note: Optional[str] = None,
    ) -> LogOutcome:
        now = self.clock()
        record = self.get_record(user_id, item_id)
        zone = self._zone(user_id)
        window_start = now - self.idempotency_window
        previous_value = record.current_value

        entries = self._entries.setdefault((user_id, item_id), [])
        recent = self._latest_since(entries, window_start)

        if recent is not None and recent.status == status.value:
            logger.info(f"Recent {status.value} entry exists for {item_id}, skipping duplicate")
            return self._outcome(record, LogWrite.SKIPPED, previous_value)

        if recent is not None:
            logger.info(f"Updated recent entry for {item_id}: {recent.status} -> {status.value}")
            recent.status = status.value
            recent.value = value
            recent.note = note
            recent.performed_at = now
            write = LogWrite.UPDATED
        else:
            entries.append(_StoredEntry(status=status.value, performed_at=now, value=value, note=note))
            write = LogWrite.INSERTED

        record.last_checked_at = now
        if kind == ItemKind.VITAL:
            if value is not None:
                record.current_value = value
        elif status == LogStatus.COMPLETED:
            self._count_rep(record, now, window_start, zone)

        return self._outcome(record, write, previous_value)

    def _count_rep(self, record: TrackedRecord, now: datetime, window_start: datetime, zone):
        last = record.last_performed_at
        if last is not None and last > window_start:
            logger.info(f"{record.id} already counted at {last.isoformat()}, reps unchanged")
            return
        base = record.current_reps
        if record.is_habit and (last is None or not dates.same_iso_week(last, now, zone)):
            base = 0
        record.current_reps = base + 1
        record.last_performed_at = now
        logger.info(f"Incremented reps for {record.id} to {record.current_reps}")

        if record.kind == ItemKind.EXERCISE and record.current_reps >= max(1, record.target_reps or 1):
            record.status = RecordStatus.COMPLETED

    @staticmethod
    def _latest_since(entries: List[_StoredEntry], since: datetime) -> Optional[_StoredEntry]:
        recent = [e for e in entries if e.performed_at >= since]
        if not recent:
            return None
        return max(recent, key=lambda e: e.performed_at)

    @staticmethod
    def _outcome(record: TrackedRecord, write: LogWrite, previous_value: Optional[float]) -> LogOutcome:
        return LogOutcome(
            write=write,
            weekly_count=record.current_reps if record.is_habit else None,
            total_count=record.current_reps,
            previous_value=previous_value,
        )

    # === HistorySource ===

    def recent_log_entries(self, user_id: str, item_id: str, limit: int) -> List[LogEntry]:
        zone = self._zone(user_id)
        return [
            LogEntry(
                status=e.status,
                day=dates.to_local(e.performed_at, zone).date(),
                performed_at=e.performed_at,
                value=e.value,
                note=e.note,
            )
            for e in self.entries_for(user_id, item_id)[:limit]
        ]

    # === PlanStore ===

    def check_level_up(self, user_id: str, item_id: str) -> Optional[LevelUp]:
        record = self.get_record(user_id, item_id)
        if record.is_habit or record.kind != ItemKind.ACTION:
            return None
        target = record.target_reps or 1
        if record.current_reps < target:
            return None

        logger.info(f"Level up for {item_id} ({record.current_reps}/{target})")
        record.status = RecordStatus.COMPLETED
        nxt = self._next_pending(user_id, record)
        if nxt is not None:
            nxt.status = RecordStatus.ACTIVE
            logger.info(f"Unlocked next action: {nxt.title}")
        return LevelUp(
            completed_item_id=record.id,
            completed_title=record.title,
            next_item_id=nxt.id if nxt else None,
            next_title=nxt.title if nxt else None,
        )

    def activate_next_item(self, user_id: str, item_id: str) -> Optional[TrackedRecord]:
        record = self.get_record(user_id, item_id)
        nxt = self._next_pending(user_id, record)
        if nxt is None:
            logger.info(f"No pending item to activate after {item_id}")
            return None
        nxt.status = RecordStatus.ACTIVE
        logger.info(f"Activated {nxt.id} after {item_id}")
        return replace(nxt)

    def increase_weekly_target(self, user_id: str, item_id: str, day: Optional[str] = None) -> int:
        record = self.get_record(user_id, item_id)
        current = record.target_reps or 1
        record.target_reps = min(current + 1, self.max_weekly_frequency)
        if day and day not in record.scheduled_days:
            record.scheduled_days = tuple(record.scheduled_days) + (day,)
        logger.info(f"Weekly target of {item_id}: {current} -> {record.target_reps}")
        return record.target_reps

    def create_sub_item(self, user_id: str, parent_id: str, proposal: ProposedItem) -> str:
        parent = self.get_record(user_id, parent_id)
        new_id = f"{parent_id}-step-{next(self._ids)}"
        self.add_record(user_id, TrackedRecord(
            id=new_id,
            kind=ItemKind.ACTION,
            title=proposal.title,
            description=proposal.description,
            status=RecordStatus.ACTIVE,
            target_reps=1,
            time_of_day=parent.time_of_day,
            plan_position=parent.plan_position,
            parent_id=parent_id,
        ))
        logger.info(f"Created sub-item {new_id} under {parent_id}")
        return new_id

    # === Helpers ===

    def _zone(self, user_id: str):
        return dates.get_zone(self._timezones.get(user_id), self.default_timezone)

    def _next_pending(self, user_id: str, after: TrackedRecord) -> Optional[TrackedRecord]:
        pending = [
            r for r in self._records.get(user_id, {}).values()
            if r.status == RecordStatus.PENDING and r.kind == ItemKind.ACTION and r.id != after.id
        ]
        if not pending:
            return None
        return min(pending, key=lambda r: r.plan_position)
