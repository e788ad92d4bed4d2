"""Item progress and session state machines, plus session serialization."""
import itertools
from datetime import timedelta

import pytest

from conftest import NOW, USER, play
from core import item_progress, session_machine
from core.item_progress import PHASE_RANK, ProgressEvent
from models.checkup import (
    BreakdownOffer,
    CheckupItem,
    CheckupSession,
    DayScope,
    IncreaseTargetOffer,
    ItemKind,
    ItemPhase,
    LogAction,
    LogStatus,
    OfferStage,
    SessionStatus,
    TurnResult,
    ValueKind,
    VitalSnapshot,
)
from models.tracking import TrackedRecord


def _items(*ids):
    return [CheckupItem(id=i, kind=ItemKind.ACTION, title=i.title()) for i in ids]


class TestItemProgress:
    """Forward-only phases."""

    def test_initialize_all_not_started(self):
        progress = item_progress.initialize_progress(_items("a", "b"))
        assert set(progress) == {"a", "b"}
        assert all(p.phase == ItemPhase.NOT_STARTED for p in progress.values())

    def test_backward_update_rejected(self):
        """A logged item never goes back to awaiting_answer."""
        session = session_machine.start_session(USER, _items("a"), NOW)
        item_progress.apply_event(session, "a", ProgressEvent.LOG, logged_status="completed", logged_at=NOW)

        item_progress.update(session, "a", phase=ItemPhase.AWAITING_ANSWER)

        progress = item_progress.get_progress(session, "a")
        assert progress.phase == ItemPhase.LOGGED
        assert progress.logged_status == "completed"

    def test_illegal_event_is_ignored(self):
        session = session_machine.start_session(USER, _items("a"), NOW)
        item_progress.apply_event(session, "a", ProgressEvent.ASK_REASON)
        assert item_progress.get_progress(session, "a").phase == ItemPhase.NOT_STARTED

    def test_log_keeps_status_set_while_offer_pending(self):
        session = session_machine.start_session(USER, _items("a"), NOW)
        item_progress.apply_event(session, "a", ProgressEvent.ASK)
        item_progress.mark_logged_status(session, "a", "missed", NOW)
        item_progress.apply_event(session, "a", ProgressEvent.OFFER_BREAKDOWN)
        item_progress.apply_event(session, "a", ProgressEvent.LOG)

        progress = item_progress.get_progress(session, "a")
        assert progress.phase == ItemPhase.LOGGED
        assert progress.logged_status == "missed"
        assert progress.logged_at == NOW

    def test_digression_counts(self):
        session = session_machine.start_session(USER, _items("a"), NOW)
        item_progress.apply_event(session, "a", ProgressEvent.ASK)
        item_progress.apply_event(session, "a", ProgressEvent.DIGRESS)
        item_progress.apply_event(session, "a", ProgressEvent.DIGRESS)
        assert item_progress.get_progress(session, "a").digression_count == 2

    def test_unknown_item_reads_as_not_started(self):
        session = session_machine.start_session(USER, _items("a"), NOW)
        assert item_progress.get_progress(session, "zzz").phase == ItemPhase.NOT_STARTED

    def test_phase_never_moves_back(self):
        """Every sequence of three events or direct updates keeps the phase rank monotone."""
        steps = list(ProgressEvent) + list(ItemPhase)
        for sequence in itertools.product(steps, repeat=3):
            session = session_machine.start_session(USER, _items("a"), NOW)
            seen = PHASE_RANK[ItemPhase.NOT_STARTED]
            for step in sequence:
                if isinstance(step, ProgressEvent):
                    item_progress.apply_event(session, "a", step, logged_at=NOW)
                else:
                    item_progress.update(session, "a", phase=step)
                rank = PHASE_RANK[item_progress.get_progress(session, "a").phase]
                assert rank >= seen, sequence
                seen = rank


class TestSessionMachine:

    def test_advance_asks_next_item(self):
        session = session_machine.mark_opening(session_machine.start_session(USER, _items("a", "b"), NOW))
        session_machine.advance(session)

        assert session.cursor == 1
        assert session.aux.progress["b"].phase == ItemPhase.AWAITING_ANSWER
        assert session.status == SessionStatus.IN_PROGRESS

    def test_advance_past_last_closes(self):
        session = session_machine.start_session(USER, _items("a"), NOW)
        session_machine.advance(session)

        assert session.status == SessionStatus.CLOSED
        assert session.is_exhausted

    def test_pending_offer_holds_cursor(self):
        session = session_machine.start_session(USER, _items("a", "b"), NOW)
        session.aux.offer = BreakdownOffer(item_id="a", item_title="A", streak_days=5)
        session_machine.advance(session)
        assert session.cursor == 0

    def test_cursor_never_exceeds_item_count(self):
        session = session_machine.start_session(USER, _items("a"), NOW)
        session_machine.advance(session)
        session_machine.advance(session)
        assert session.cursor == 1

    def test_close_drops_offer(self):
        session = session_machine.start_session(USER, _items("a"), NOW)
        session.aux.offer = BreakdownOffer(item_id="a", item_title="A", streak_days=5)
        session_machine.close(session)
        assert session.aux.offer is None

    def test_cold_relaunch_threshold(self):
        assert session_machine.is_cold_relaunch(None, NOW, 4)
        assert session_machine.is_cold_relaunch(NOW - timedelta(hours=4), NOW, 4)
        assert not session_machine.is_cold_relaunch(NOW - timedelta(hours=3), NOW, 4)

    def test_opening_only_once(self):
        session = session_machine.start_session(USER, _items("a"), NOW)
        assert session_machine.needs_opening(session)
        session_machine.mark_opening(session)
        assert not session_machine.needs_opening(session)

    @pytest.mark.parametrize("count", [1, 2, 3, 5])
    @pytest.mark.parametrize("status", [LogStatus.COMPLETED, LogStatus.PARTIAL, LogStatus.MISSED])
    def test_logging_every_item_closes_at_the_end(self, engine, store, count, status):
        """Valid logs on a non-empty list always end closed with the cursor at the end."""
        ids = [f"item{k}" for k in range(count)]
        for position, item_id in enumerate(ids):
            store.add_record(USER, TrackedRecord(id=item_id, kind=ItemKind.ACTION, title=item_id,
                                                 target_reps=10, plan_position=position))
        opening, *turns = play(engine, [""] + ["x"] * count, model_output=LogAction(status=status))

        assert [t.session.cursor for t in turns] == list(range(1, count + 1))
        last = turns[-1]
        assert last.is_closed
        assert last.session.status == SessionStatus.CLOSED
        assert last.session.cursor == len(last.session.items) == count


class TestSerialization:
    """The session travels between turns as a plain dict."""

    def test_session_with_offer_round_trip(self):
        items = [
            CheckupItem(id="w", kind=ItemKind.VITAL, title="Poids", value_kind=ValueKind.NUMERIC,
                        unit="kg", target_quantity=70.0, day_scope=DayScope.TODAY),
            CheckupItem(id="a", kind=ItemKind.ACTION, title="Marcher", target_quantity=3,
                        scheduled_days=("mon", "thu"), is_weekly_habit=True),
        ]
        session = session_machine.mark_opening(session_machine.start_session(USER, items, NOW))
        session.aux.vital_snapshots["w"] = VitalSnapshot(previous=72.0, current=71.5, target=70.0,
                                                         tone="encouraging")
        session.aux.offer = IncreaseTargetOffer(item_id="a", item_title="Marcher", current_target=3,
                                                stage=OfferStage.AWAITING_DETAIL,
                                                scheduled_days=("mon", "thu"), reprompts=1)
        session.aux.declined_breakdowns.append("x")

        restored = CheckupSession.from_dict(session.to_dict())

        assert restored.user_id == USER
        assert restored.started_at == NOW
        assert restored.items[1].scheduled_days == ("mon", "thu")
        assert restored.items[0].day_scope == DayScope.TODAY
        assert restored.aux.progress["w"].phase == ItemPhase.AWAITING_ANSWER
        assert restored.aux.vital_snapshots["w"].tone == "encouraging"
        assert isinstance(restored.aux.offer, IncreaseTargetOffer)
        assert restored.aux.offer.stage == OfferStage.AWAITING_DETAIL
        assert restored.aux.offer.reprompts == 1
        assert restored.aux.offer.needs_day
        assert restored.aux.declined_breakdowns == ["x"]
        assert restored.aux.opening_done

    def test_closed_result_has_nothing_to_persist(self):
        session = session_machine.start_session(USER, _items("a"), NOW)
        assert TurnResult(content="", session=session).state_to_persist() is not None
        session_machine.close(session)
        assert TurnResult(content="", session=session).state_to_persist() is None
