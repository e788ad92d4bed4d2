"""Pending item selection."""
from datetime import datetime, timedelta, timezone

import pytest

from conftest import NOW, USER
from models.checkup import DayScope, ItemKind, ValueKind
from models.tracking import RecordStatus, TrackedRecord
from services.catalog import CatalogLoader

# 17:00 in Paris, after the day scope cutoff.
EVENING = datetime(2026, 10, 14, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def catalog(store):
    return CatalogLoader(store)


def _ids(items):
    return [it.id for it in items]


class TestFreshness:

    def test_recently_checked_item_is_not_asked(self, store, catalog):
        store.add_record(USER, TrackedRecord(id="a", kind=ItemKind.ACTION, title="A",
                                             last_checked_at=NOW - timedelta(hours=2)))
        store.add_record(USER, TrackedRecord(id="b", kind=ItemKind.ACTION, title="B",
                                             last_checked_at=NOW - timedelta(hours=20)))
        assert _ids(catalog.load_pending_items(USER, NOW)) == ["b"]

    def test_recent_completion_counts_as_fresh(self, store, catalog):
        store.add_record(USER, TrackedRecord(id="a", kind=ItemKind.ACTION, title="A",
                                             last_performed_at=NOW - timedelta(hours=5)))
        assert catalog.load_pending_items(USER, NOW) == []

    def test_naive_timestamps_read_as_utc(self, store, catalog):
        naive = (NOW - timedelta(hours=2)).replace(tzinfo=None)
        store.add_record(USER, TrackedRecord(id="a", kind=ItemKind.ACTION, title="A", last_checked_at=naive))
        assert catalog.load_pending_items(USER, NOW) == []

    def test_only_active_records(self, store, catalog):
        store.add_record(USER, TrackedRecord(id="a", kind=ItemKind.ACTION, title="A", status=RecordStatus.PENDING))
        store.add_record(USER, TrackedRecord(id="b", kind=ItemKind.ACTION, title="B", status=RecordStatus.COMPLETED))
        assert catalog.load_pending_items(USER, NOW) == []


class TestHabits:

    def test_off_day_is_skipped(self, store, catalog):
        """Morning bilan is about Tuesday: a Monday-only habit is not due."""
        store.add_record(USER, TrackedRecord(id="mon", kind=ItemKind.ACTION, title="M", is_habit=True,
                                             target_reps=1, scheduled_days=("mon",)))
        store.add_record(USER, TrackedRecord(id="tue", kind=ItemKind.ACTION, title="T", is_habit=True,
                                             target_reps=1, scheduled_days=("tue",)))
        assert _ids(catalog.load_pending_items(USER, NOW)) == ["tue"]

    def test_weekly_target_reached_is_skipped(self, store, catalog):
        store.add_record(USER, TrackedRecord(id="a", kind=ItemKind.ACTION, title="A", is_habit=True,
                                             target_reps=2, current_reps=2,
                                             last_performed_at=NOW - timedelta(days=1)))
        assert catalog.load_pending_items(USER, NOW) == []

    def test_reps_from_last_week_do_not_count(self, store, catalog):
        store.add_record(USER, TrackedRecord(id="a", kind=ItemKind.ACTION, title="A", is_habit=True,
                                             target_reps=2, current_reps=2,
                                             last_performed_at=NOW - timedelta(days=7)))
        items = catalog.load_pending_items(USER, NOW)

        assert _ids(items) == ["a"]
        assert items[0].current_quantity == 0
        assert items[0].weekly_target == 2
        assert items[0].is_weekly_habit


class TestDayScopeAndOrder:

    def test_before_cutoff_everything_is_yesterday(self, store, catalog):
        store.add_record(USER, TrackedRecord(id="a", kind=ItemKind.ACTION, title="A"))
        store.add_record(USER, TrackedRecord(id="v", kind=ItemKind.VITAL, title="V", value_kind=ValueKind.NUMERIC))
        items = catalog.load_pending_items(USER, NOW)
        assert {it.day_scope for it in items} == {DayScope.YESTERDAY}

    def test_after_cutoff_evening_items_stay_on_yesterday(self, store, catalog):
        store.add_record(USER, TrackedRecord(id="a", kind=ItemKind.ACTION, title="A"))
        store.add_record(USER, TrackedRecord(id="night", kind=ItemKind.ACTION, title="N", time_of_day="evening"))
        items = {it.id: it for it in catalog.load_pending_items(USER, EVENING)}

        assert items["a"].day_scope == DayScope.TODAY
        assert items["night"].day_scope == DayScope.YESTERDAY

    def test_vitals_then_actions_then_exercises(self, store, catalog):
        store.add_record(USER, TrackedRecord(id="ex", kind=ItemKind.EXERCISE, title="E", plan_position=0))
        store.add_record(USER, TrackedRecord(id="act", kind=ItemKind.ACTION, title="A", plan_position=1))
        store.add_record(USER, TrackedRecord(id="vit", kind=ItemKind.VITAL, title="V", plan_position=2,
                                             value_kind=ValueKind.NUMERIC, current_value=60, target_value=55))
        items = catalog.load_pending_items(USER, NOW)

        assert _ids(items) == ["vit", "act", "ex"]
        assert items[0].target_quantity == 55
        assert items[0].current_quantity == 60

    def test_unknown_timezone_falls_back(self, store, catalog):
        store.set_timezone(USER, "Mars/Olympus")
        store.add_record(USER, TrackedRecord(id="a", kind=ItemKind.ACTION, title="A"))
        assert _ids(catalog.load_pending_items(USER, NOW)) == ["a"]

    def test_source_failure_degrades_to_empty(self):
        class Broken:
            def user_timezone(self, user_id):
                return None

            def fetch_active_records(self, user_id):
                raise ConnectionError("down")

        assert CatalogLoader(Broken()).load_pending_items(USER, NOW) == []
