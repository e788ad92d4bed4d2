"""Item Catalog Loader.

Resolves which tracked items are due for review in a bilan "now":

1. Freshness: an item confirmed within the freshness window is not asked again.
2. Schedule: a habit with explicit weekly days is skipped on its off days.
3. Weekly target: a habit already at its weekly target this ISO week is skipped.
4. Day scope: before the cutoff hour everything refers to yesterday; after it,
   evening/night actions still refer to yesterday and the rest to today.
5. Order: vitals, then actions, then exercises.

Read-only. Any failure degrades to an empty list.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from config.settings import CheckupPolicy, DEFAULT_TIMEZONE
from models.checkup import CheckupItem, ItemKind, ValueKind, WeeklyTargetStatus
from models.tracking import RecordStatus, TrackedRecord
from services.interfaces import ItemRecordSource
from tools import dates

logger = logging.getLogger(__name__)

KIND_ORDER = {ItemKind.VITAL: 0, ItemKind.ACTION: 1, ItemKind.EXERCISE: 2}


class CatalogLoader:
    """Builds the frozen item list of a new checkup from an ItemRecordSource."""

    def __init__(self, source: ItemRecordSource, policy: Optional[CheckupPolicy] = None,
                 default_timezone: str = DEFAULT_TIMEZONE):
        self.source = source
        self.policy = policy or CheckupPolicy()
        self.default_timezone = default_timezone

    def load_pending_items(self, user_id: str, now: Optional[datetime] = None) -> List[CheckupItem]:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        try:
            return self._load(user_id, now)
        except Exception as e:
            logger.error(f"Failed to load pending items for {user_id}: {e}", exc_info=True)
            return []

    def _load(self, user_id: str, now: datetime) -> List[CheckupItem]:
        zone = dates.get_zone(self.source.user_timezone(user_id), self.default_timezone)
        local_hour = dates.to_local(now, zone).hour
        scope = dates.global_day_scope(local_hour, self.policy.day_scope_cutoff_hour)
        weekday = dates.weekday_code(dates.scoped_day(now, zone, scope))
        fresh_since = now - timedelta(hours=self.policy.freshness_window_hours)

        records = [r for r in self.source.fetch_active_records(user_id) if r.status == RecordStatus.ACTIVE]
        records.sort(key=lambda r: r.plan_position)

        pending: List[CheckupItem] = []
        for record in records:
            if not self._is_stale(record, fresh_since):
                continue
            if record.kind == ItemKind.ACTION:
                item = self._action_item(record, now, zone, local_hour, weekday)
            elif record.kind == ItemKind.VITAL:
                item = CheckupItem(
                    id=record.id,
                    kind=ItemKind.VITAL,
                    title=record.title,
                    description=record.description,
                    value_kind=ValueKind.NUMERIC,
                    target_quantity=record.target_value,
                    current_quantity=record.current_value,
                    unit=record.unit,
                    day_scope=scope,
                    time_of_day=record.time_of_day,
                )
            else:
                item = CheckupItem(
                    id=record.id,
                    kind=ItemKind.EXERCISE,
                    title=record.title,
                    description=record.description,
                    value_kind=record.value_kind,
                    day_scope=scope,
                    time_of_day=record.time_of_day,
                )
            if item is not None:
                pending.append(item)

        pending.sort(key=lambda it: KIND_ORDER.get(it.kind, 99))
        logger.info(f"Loaded {len(pending)} pending items for {user_id} (scope={scope.value}, day={weekday})")
        return pending

    @staticmethod
    def _is_stale(record: TrackedRecord, fresh_since: datetime) -> bool:
        seen = [d if d.tzinfo else d.replace(tzinfo=timezone.utc)
                for d in (record.last_checked_at, record.last_performed_at) if d is not None]
        if not seen:
            return True
        return max(seen) < fresh_since

    def _action_item(self, record: TrackedRecord, now: datetime, zone, local_hour: int,
                     weekday: str) -> Optional[CheckupItem]:
        scheduled = tuple(record.scheduled_days or ())
        if record.is_habit and scheduled and weekday not in scheduled:
            return None

        weekly_reps = 0
        if record.last_performed_at is not None and dates.same_iso_week(record.last_performed_at, now, zone):
            weekly_reps = record.current_reps
        target = record.target_reps if record.target_reps is not None else 1

        if record.is_habit and target > 0 and weekly_reps >= target:
            return None

        return CheckupItem(
            id=record.id,
            kind=ItemKind.ACTION,
            title=record.title,
            description=record.description,
            value_kind=record.value_kind,
            target_quantity=target,
            current_quantity=weekly_reps if record.is_habit else record.current_reps,
            unit=record.unit,
            scheduled_days=scheduled,
            day_scope=dates.item_day_scope(record.time_of_day, local_hour, self.policy.day_scope_cutoff_hour),
            is_weekly_habit=record.is_habit,
            weekly_target_status=WeeklyTargetStatus.BELOW if record.is_habit else None,
            time_of_day=record.time_of_day,
        )
