"""End-to-end turns through InvestigatorAgent (fallback mode, frozen clock)."""
from datetime import timedelta

import pytest

from agents.investigator_agent import InvestigatorAgent
from conftest import NOW, USER, play
from core import observability, session_machine
from models.checkup import (
    CheckupSession,
    FreeText,
    ItemKind,
    ItemPhase,
    LogAction,
    LogStatus,
    SessionStatus,
    ValueKind,
)
from models.tracking import RecordStatus, TrackedRecord
from services.memory_store import InMemoryTrackingStore


def _action(item_id, title, **kwargs):
    kwargs.setdefault("target_reps", 10)
    return TrackedRecord(id=item_id, kind=ItemKind.ACTION, title=title, **kwargs)


class TestOpening:
    """First turn of a bilan."""

    def test_cold_opening_asks_first_item(self, engine, store):
        """Without a recent message the opening is cold and ends on the first question."""
        store.add_record(USER, _action("walk", "Marcher"))
        result = engine.run(USER, "", now=NOW)

        assert result.scenario == "opening_cold"
        assert result.session.status == SessionStatus.IN_PROGRESS
        assert result.session.cursor == 0
        assert result.session.aux.opening_done is True
        assert result.session.aux.progress["walk"].phase == ItemPhase.AWAITING_ANSWER
        assert "Marcher" in result.content

    def test_ongoing_opening_after_recent_message(self, engine, store):
        """A message less than the relaunch threshold ago gives the short opening."""
        store.add_record(USER, _action("walk", "Marcher"))
        result = engine.run(USER, "on fait le bilan", now=NOW, last_message_at=NOW - timedelta(hours=1))
        assert result.scenario == "opening_ongoing"

    def test_no_pending_items_closes_immediately(self, engine, store):
        """Everything fresh: closed session, nothing to persist."""
        store.add_record(USER, _action("walk", "Marcher", last_checked_at=NOW - timedelta(hours=2)))
        result = engine.run(USER, "", now=NOW)

        assert result.scenario == "no_pending_items"
        assert result.is_closed
        assert result.state_to_persist() is None
        assert result.stats.items == 0

    def test_items_override_catalog(self, engine, store):
        """An explicit item list is used as-is."""
        store.add_record(USER, _action("walk", "Marcher"))
        store.add_record(USER, _action("read", "Lire"))
        items = [it for it in engine.catalog.load_pending_items(USER, NOW) if it.id == "read"]

        result = engine.run(USER, "", now=NOW, items=items)
        assert [it.id for it in result.session.items] == ["read"]


class TestItemTraversal:
    """Logging items and moving the cursor."""

    def test_completed_boolean_advances_cursor(self, engine, store):
        """A completed answer logs the item and asks the next one."""
        store.add_record(USER, _action("walk", "Marcher", plan_position=0))
        store.add_record(USER, _action("read", "Lire", plan_position=1))

        opening, turn = play(engine, ["", "c'est fait"])

        assert turn.scenario == "action_completed_transition"
        assert turn.session.cursor == 1
        progress = turn.session.aux.progress["walk"]
        assert progress.phase == ItemPhase.LOGGED
        assert progress.logged_status == "completed"
        assert turn.session.aux.progress["read"].phase == ItemPhase.AWAITING_ANSWER
        assert "Lire" in turn.content
        assert store.entries_for(USER, "walk")[0].status == "completed"

    def test_last_item_closes_session(self, engine, store):
        """Logging the last item closes the bilan and returns stats."""
        store.add_record(USER, _action("walk", "Marcher"))

        _, last = play(engine, ["", "pas fait"])

        assert last.is_closed
        assert last.scenario == "end_checkup_after_last_log"
        assert last.state_to_persist() is None
        assert last.stats.missed == 1
        assert last.stats.logged == 1

    def test_vital_logged_with_tone(self, engine, store):
        """Vitals come first; moving towards the target is encouraging."""
        store.add_record(USER, _action("walk", "Marcher", plan_position=0))
        store.add_record(USER, TrackedRecord(
            id="weight", kind=ItemKind.VITAL, title="Poids", value_kind=ValueKind.NUMERIC,
            unit="kg", current_value=72.4, target_value=70.0, plan_position=1,
        ))

        opening, turn = play(engine, ["", "71,8 kg"])

        assert opening.session.items[0].id == "weight"
        assert turn.scenario == "vital_logged_transition"
        snapshot = turn.session.aux.vital_snapshots["weight"]
        assert snapshot.previous == 72.4
        assert snapshot.current == 71.8
        assert snapshot.tone == "encouraging"
        assert store.get_record(USER, "weight").current_value == 71.8

    def test_level_up_unlocks_next_action(self, engine, store):
        """Reaching the total target of a non-habit action completes it."""
        store.add_record(USER, _action("walk", "Marcher", target_reps=2, current_reps=1,
                                       last_performed_at=NOW - timedelta(days=2)))
        store.add_record(USER, _action("run", "Courir", status=RecordStatus.PENDING, plan_position=1))

        _, turn = play(engine, ["", "fait"])

        assert turn.scenario == "level_up"
        assert store.get_record(USER, "walk").status == RecordStatus.COMPLETED
        assert store.get_record(USER, "run").status == RecordStatus.ACTIVE
        assert "Courir" in turn.content

    def test_win_streak_on_last_item(self, engine, store):
        """Three completed days in a row, last item: streak closing variant."""
        store.add_record(USER, _action("walk", "Marcher"))
        store.add_entry(USER, "walk", "completed", NOW - timedelta(days=1))
        store.add_entry(USER, "walk", "completed", NOW - timedelta(days=2))

        _, turn = play(engine, ["", "fait"])

        assert turn.scenario == "win_streak_end"
        assert turn.is_closed

    def test_win_streak_mid_checkup(self, engine, store):
        store.add_record(USER, _action("walk", "Marcher", plan_position=0))
        store.add_record(USER, _action("read", "Lire", plan_position=1))
        store.add_entry(USER, "walk", "completed", NOW - timedelta(days=1))
        store.add_entry(USER, "walk", "completed", NOW - timedelta(days=2))

        _, turn = play(engine, ["", "fait"])
        assert turn.scenario == "win_streak_continue"
        assert turn.session.cursor == 1


class TestFreeText:
    """Model replies that are not a tool call."""

    def test_safety_net_logs_missed(self, engine, store):
        """A plain 'not done' the model answered with text is still logged as missed."""
        store.add_record(USER, _action("walk", "Marcher", plan_position=0))
        store.add_record(USER, _action("read", "Lire", plan_position=1))
        opening = engine.run(USER, "", now=NOW)

        turn = engine.run(USER, "non pas fait", session=opening.state_to_persist(), now=NOW,
                          model_output=FreeText("D'accord."))

        assert turn.scenario == "action_missed_transition"
        assert turn.session.aux.progress["walk"].logged_status == "missed"
        assert turn.session.cursor == 1

    def test_follow_up_then_reason(self, engine, store):
        """The model asks what blocked; the next answer is the reason and logs a miss."""
        store.add_record(USER, _action("walk", "Marcher", plan_position=0))
        store.add_record(USER, _action("read", "Lire", plan_position=1))
        opening = engine.run(USER, "", now=NOW)

        ask = engine.run(USER, "non", session=opening.state_to_persist(), now=NOW,
                         model_output=FreeText("Qu'est-ce qui t'a bloqué ?"))
        assert ask.scenario == "ask_reason"
        assert ask.content == "Qu'est-ce qui t'a bloqué ?"
        assert ask.session.aux.progress["walk"].phase == ItemPhase.AWAITING_REASON
        assert ask.session.cursor == 0

        reason = engine.run(USER, "trop fatigué", session=ask.state_to_persist(), now=NOW,
                            model_output=FreeText("Je comprends."))
        assert reason.scenario == "action_missed_transition"
        assert store.entries_for(USER, "walk")[0].note == "trop fatigué"

    def test_digressions_skip_item_after_cap(self, engine, store):
        """After the digression cap the item is skipped without any write."""
        store.add_record(USER, _action("walk", "Marcher", plan_position=0))
        store.add_record(USER, _action("read", "Lire", plan_position=1))
        state = engine.run(USER, "", now=NOW).state_to_persist()

        scenarios = []
        for _ in range(4):
            result = engine.run(USER, "tu connais une recette ?", session=state, now=NOW,
                                model_output=FreeText("Bonne question, on en parle après ?"))
            scenarios.append(result.scenario)
            state = result.state_to_persist()

        assert scenarios == ["digression", "digression", "digression", "item_skipped_transition"]
        assert result.session.cursor == 1
        assert result.session.aux.progress["walk"].logged_status == "skipped"
        assert store.entries_for(USER, "walk") == []
        assert result.session.aux.progress["walk"].digression_count == 4


class TestStopAndFailures:

    def test_explicit_stop_french(self, engine, store):
        """'stop' closes the bilan and counts unlogged items as missed."""
        store.add_record(USER, _action("walk", "Marcher", plan_position=0))
        store.add_record(USER, _action("read", "Lire", plan_position=1))

        _, stopped = play(engine, ["", "stop, on arrête"])

        assert stopped.scenario == "user_stopped_checkup"
        assert stopped.is_closed
        assert stopped.state_to_persist() is None
        assert stopped.stats.missed == 2
        assert store.entries_for(USER, "walk") == []

    def test_explicit_stop_english(self, store, clock):
        store.add_record(USER, _action("walk", "Walk"))
        engine = InvestigatorAgent(store, language="en", clock=clock)

        _, stopped = play(engine, ["", "let's stop here"])
        assert stopped.scenario == "user_stopped_checkup"
        assert stopped.is_closed

    def test_english_answer_mentioning_enough_is_logged(self, store, clock):
        store.add_record(USER, _action("walk", "Walk", plan_position=0))
        store.add_record(USER, _action("read", "Read", plan_position=1))
        engine = InvestigatorAgent(store, language="en", clock=clock)

        _, turn = play(engine, ["", "no, not enough time"])

        assert turn.scenario == "action_missed_transition"
        assert not turn.is_closed
        assert turn.session.cursor == 1

    def test_stop_on_closed_session_starts_fresh(self, engine, store):
        """Stop words only apply to a bilan in progress."""
        store.add_record(USER, _action("walk", "Marcher"))
        closed = CheckupSession(user_id=USER, status=SessionStatus.CLOSED)

        result = engine.run(USER, "stop", session=closed, now=NOW)
        assert result.scenario == "opening_cold"

    def test_hiccup_keeps_incoming_state(self, clock):
        """A failing log sink yields the hiccup message and the untouched session."""

        class BrokenStore(InMemoryTrackingStore):
            def log_item(self, *args, **kwargs):
                raise RuntimeError("database unavailable")

        store = BrokenStore(clock=clock)
        store.add_record(USER, _action("walk", "Marcher"))
        engine = InvestigatorAgent(store, language="fr", clock=clock)
        opening = engine.run(USER, "", now=NOW)

        result = engine.run(USER, "fait", session=opening.session, now=NOW)

        assert result.scenario == "technical_hiccup"
        assert result.session is opening.session
        assert result.session.cursor == 0
        assert result.session.aux.progress["walk"].phase == ItemPhase.AWAITING_ANSWER
        assert observability.get_metrics_summary()["hiccups"] == 1

    def test_explicit_log_action(self, engine, store):
        """A structured model output bypasses the item interpreter."""
        store.add_record(USER, _action("walk", "Marcher"))
        opening = engine.run(USER, "", now=NOW)

        result = engine.run(USER, "bof", session=opening.state_to_persist(), now=NOW,
                            model_output=LogAction(status=LogStatus.PARTIAL, note="10 minutes"))
        assert result.session.aux.progress["walk"].logged_status == "partial"
        assert result.stats.completed == 1

    def test_exhausted_session_is_closed(self, engine, store):
        store.add_record(USER, _action("walk", "Marcher"))
        opening = engine.run(USER, "", now=NOW)
        session = opening.session
        session.cursor = len(session.items)

        result = engine.run(USER, "encore ?", session=session, now=NOW)
        assert result.scenario == "end_checkup_no_more_items"
        assert result.is_closed

    def test_metrics_count_turns(self, engine, store):
        store.add_record(USER, _action("walk", "Marcher"))
        play(engine, ["", "fait"])

        summary = observability.get_metrics_summary()
        assert summary["total_turns"] == 2
        assert summary["scenarios"]["opening_cold"] == 1


class TestStateThreading:

    def test_dict_state_round_trip(self, engine, store):
        """The persisted dict is enough to resume on the next turn."""
        store.add_record(USER, _action("walk", "Marcher", plan_position=0))
        store.add_record(USER, _action("read", "Lire", plan_position=1))
        opening = engine.run(USER, "", now=NOW)
        state = opening.state_to_persist()

        assert isinstance(state, dict)
        restored = CheckupSession.from_dict(state)
        assert restored.cursor == 0
        assert [it.id for it in restored.items] == ["walk", "read"]
        assert restored.aux.progress["walk"].phase == ItemPhase.AWAITING_ANSWER

    def test_started_session_skips_opening(self, engine, store):
        """A session whose opening was already emitted goes straight to the item."""
        store.add_record(USER, _action("walk", "Marcher"))
        items = engine.catalog.load_pending_items(USER, NOW)
        session = session_machine.mark_opening(session_machine.start_session(USER, items, NOW))

        result = engine.run(USER, "fait", session=session, now=NOW)
        assert result.scenario == "end_checkup_after_last_log"

    @pytest.mark.parametrize("message", ["fait", "c'est fait", "j'ai fait"])
    def test_done_wordings(self, engine, store, message):
        store.add_record(USER, _action("walk", "Marcher"))
        _, turn = play(engine, ["", message])
        assert turn.session.aux.progress["walk"].logged_status == "completed"
