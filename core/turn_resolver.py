"""Turn Resolver.

Interprets one user message plus the model output against the current
session and item, and decides the next state and the outgoing message.

    active offer        -> offer sub-flow, model output ignored
    IncreaseTargetAction -> weekly target increase (direct or via an offer)
    LogAction           -> write through the log sink, then streak / target checks
    FreeText            -> safety net, follow-up question, or digression

Deterministic safety net: for boolean items, a plain "not done" answer that
the model did not turn into a log (and did not follow up with a question)
is logged as missed directly.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from config.settings import CheckupPolicy
from core import item_progress
from core.item_progress import ProgressEvent
from core.offers import OfferFlows
from core.transitions import Resolution, Transitions
from models.checkup import (
    CheckupItem,
    CheckupSession,
    FreeText,
    IncreaseTargetAction,
    ItemKind,
    ItemPhase,
    LogAction,
    LogStatus,
    ModelOutput,
    VitalSnapshot,
    WeeklyTargetStatus,
)
from services.interfaces import Decomposer, HistorySource, LogSink, Narrator, PlanStore
from tools import intents
from tools.streaks import StreakAnalyzer
from tools.vitals import vital_tone

logger = logging.getLogger(__name__)

TRANSITION_BY_STATUS = {
    LogStatus.COMPLETED: "action_completed_transition",
    LogStatus.PARTIAL: "action_partial_transition",
    LogStatus.MISSED: "action_missed_transition",
}


def weekly_target_status(count: Optional[int], target: Optional[int]) -> Optional[WeeklyTargetStatus]:
    if count is None or target is None:
        return None
    if count < target:
        return WeeklyTargetStatus.BELOW
    if count == target:
        return WeeklyTargetStatus.AT_TARGET
    return WeeklyTargetStatus.EXCEEDED


class TurnResolver:
    """resolve(session, item_id, message, model_output) -> Resolution"""

    def __init__(
        self,
        log_sink: LogSink,
        history: HistorySource,
        plans: PlanStore,
        narrator: Narrator,
        decomposer: Decomposer,
        policy: Optional[CheckupPolicy] = None,
        language: str = "fr",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.log_sink = log_sink
        self.plans = plans
        self.policy = policy or CheckupPolicy()
        self.language = language
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.streaks = StreakAnalyzer(history, limit=self.policy.streak_history_limit)
        self.transitions = Transitions(narrator, self.policy, language)
        self.offers = OfferFlows(self.transitions, plans, decomposer, self.policy, language, self.clock)

    def resolve(self, session: CheckupSession, item_id: str, message: str,
                model_output: Optional[ModelOutput]) -> Resolution:
        if session.aux.offer is not None:
            return self.offers.handle(session, message)

        item = session.item(item_id)
        if item is None:
            raise KeyError(f"Item {item_id} is not part of this checkup")

        if isinstance(model_output, LogAction):
            return self._log(session, item, model_output, message)
        if isinstance(model_output, IncreaseTargetAction):
            return self.offers.handle_increase_request(session, item, model_output, message)
        if isinstance(model_output, FreeText):
            return self._free_text(session, item, model_output, message)
        raise TypeError(f"Unsupported model output: {model_output!r}")

    # === Free text ===

    def _free_text(self, session: CheckupSession, item: CheckupItem, output: FreeText,
                   message: str) -> Resolution:
        progress = item_progress.get_progress(session, item.id)
        lang = self.language
        follow_up = intents.is_follow_up_question(output.text, lang)
        not_done = intents.says_not_done(message, lang) and not intents.says_done(message, lang)

        if item.is_boolean and item.kind != ItemKind.VITAL:
            if not_done and not follow_up:
                logger.info(f"Safety net: logging {item.id} as missed from the user's wording")
                return self._log(session, item, self._auto_missed(message), message)
            if progress.phase == ItemPhase.AWAITING_REASON and not follow_up and not intents.says_done(message, lang):
                logger.info(f"Reason received for {item.id}, logging missed")
                return self._log(session, item, self._auto_missed(message), message)
            if not_done and follow_up and progress.phase == ItemPhase.AWAITING_ANSWER:
                item_progress.apply_event(session, item.id, ProgressEvent.ASK_REASON, question_kind="reason")
                return Resolution(session, output.text, "ask_reason")

        item_progress.apply_event(session, item.id, ProgressEvent.DIGRESS, question_kind="digression")
        count = item_progress.get_progress(session, item.id).digression_count
        if count >= self.policy.max_digressions:
            logger.warning(f"Item {item.id} skipped after {count} digressions")
            self.transitions.close_item(session, item, self.clock(), status="skipped")
            data = self.transitions.base_data(item, message, digressions=count)
            return self.transitions.move_on(session, item, "item_skipped_transition", data)

        return Resolution(session, output.text, "digression")

    def _auto_missed(self, message: str) -> LogAction:
        note = (message or "").strip()[:self.policy.note_max_chars] or None
        return LogAction(status=LogStatus.MISSED, note=note)

    # === Logging ===

    def _log(self, session: CheckupSession, item: CheckupItem, action: LogAction,
             message: str) -> Resolution:
        note = action.note[:self.policy.note_max_chars] if action.note else None
        outcome = self.log_sink.log_item(session.user_id, item.id, item.kind, action.status, action.value, note)
        now = self.clock()
        logger.info(f"Logged {item.id} as {action.status.value} ({outcome.write.value})")

        data = self.transitions.base_data(item, message, status=action.status.value,
                                          value=action.value, note=note)

        if item.kind == ItemKind.VITAL:
            tone = vital_tone(action.value, outcome.previous_value, item.target_quantity)
            session.aux.vital_snapshots[item.id] = VitalSnapshot(
                previous=outcome.previous_value, current=action.value, target=item.target_quantity, tone=tone,
            )
            data["tone"] = tone
            self.transitions.close_item(session, item, now, status=action.status.value)
            return self.transitions.move_on(session, item, "vital_logged_transition", data, committed=True)

        if action.status == LogStatus.MISSED:
            return self._after_missed(session, item, data, note, now)

        if action.status == LogStatus.COMPLETED and not outcome.is_duplicate:
            resolution = self._after_completed(session, item, outcome, data, now)
            if resolution is not None:
                return resolution

        self.transitions.close_item(session, item, now, status=action.status.value)
        return self.transitions.move_on(session, item, TRANSITION_BY_STATUS[action.status], data,
                                        committed=True)

    def _after_missed(self, session: CheckupSession, item: CheckupItem, data, note: Optional[str],
                      now: datetime) -> Resolution:
        streak = self.streaks.missed_streak(session.user_id, item.id)
        session.aux.missed_streaks[item.id] = streak
        data["streak_days"] = streak

        if (
            item.kind == ItemKind.ACTION
            and streak >= self.policy.missed_streak_offer_threshold
            and item.id not in session.aux.declined_breakdowns
        ):
            item_progress.mark_logged_status(session, item.id, LogStatus.MISSED.value, now)
            item_progress.apply_event(session, item.id, ProgressEvent.OFFER_BREAKDOWN, question_kind="breakdown")
            return self.offers.open_breakdown(session, item, streak, note, data, committed=True)

        self.transitions.close_item(session, item, now, status=LogStatus.MISSED.value)
        return self.transitions.move_on(session, item, "action_missed_transition", data, committed=True)

    def _after_completed(self, session: CheckupSession, item: CheckupItem, outcome, data,
                         now: datetime) -> Optional[Resolution]:
        """Weekly target offers, level-up and win streak. None means a plain transition."""
        if item.kind != ItemKind.ACTION:
            return None

        win_streak = self.streaks.completed_streak(session.user_id, item.id) if item.is_boolean else 0
        if win_streak >= self.policy.win_streak_threshold:
            data["win_streak_days"] = win_streak
            data["streak_days"] = win_streak

        if item.is_weekly_habit:
            target = item.weekly_target
            status = weekly_target_status(outcome.weekly_count, target)
            data.update(weekly_count=outcome.weekly_count, weekly_target=target,
                        weekly_target_status=status.value if status else None)

            if status == WeeklyTargetStatus.AT_TARGET and item.id not in session.aux.activation_offered:
                self.transitions.close_item(session, item, now, status=LogStatus.COMPLETED.value)
                return self.offers.open_activate_next(session, item, data, committed=True)
            if (
                status == WeeklyTargetStatus.EXCEEDED
                and target < self.policy.max_weekly_frequency
                and item.id not in session.aux.declined_increases
            ):
                self.transitions.close_item(session, item, now, status=LogStatus.COMPLETED.value)
                return self.offers.open_increase(session, item, data, committed=True)
        else:
            # The log is already written: a failed check must not turn into a retry.
            try:
                level_up = self.plans.check_level_up(session.user_id, item.id)
            except Exception as e:
                logger.error(f"Level-up check failed for {item.id}: {e}", exc_info=True)
                level_up = None
            if level_up is not None:
                data.update(next_title=level_up.next_title, next_item_id=level_up.next_item_id)
                self.transitions.close_item(session, item, now, status=LogStatus.COMPLETED.value)
                return self.transitions.move_on(session, item, "level_up", data, committed=True)

        if win_streak >= self.policy.win_streak_threshold:
            self.transitions.close_item(session, item, now, status=LogStatus.COMPLETED.value)
            return self.transitions.move_on(session, item, "win_streak_continue", data, committed=True)
        return None
