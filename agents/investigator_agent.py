"""InvestigatorAgent - Daily Bilan Orchestrator

Runs one turn of the checkup dialogue. The engine keeps no state between
turns: the caller passes the serialized session in and stores whatever
comes back in TurnResult.state_to_persist().

Turn flow:
    1. Explicit stop        -> session closed, unlogged items counted as missed
    2. No active session    -> pending items loaded, session started
    3. Empty item list      -> closed with "no_pending_items"
    4. Opening not emitted  -> cold / ongoing opening + first question
    5. Otherwise            -> ItemAgent interprets, TurnResolver decides

Any failure inside step 5 leaves the incoming session untouched and answers
with the "technical_hiccup" template.
"""
import copy
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Union

from agents.decomposer_agent import DecomposerAgent
from agents.item_agent import ItemAgent
from agents.narrator_agent import NarratorAgent
from config.settings import CHECKUP_LANGUAGE, CheckupPolicy, DEFAULT_TIMEZONE
from core import session_machine
from core.observability import Tracer
from core.transitions import narrate_or_template
from core.turn_resolver import TurnResolver
from models.checkup import (
    CheckupItem,
    CheckupSession,
    ModelOutput,
    SessionStatus,
    TurnResult,
)
from services.catalog import CatalogLoader
from services.interfaces import Decomposer, Narrator
from tools import intents, templates
from tools.checkup_stats import compute_checkup_stats

logger = logging.getLogger(__name__)

HISTORY_FOR_PROMPT = 7


class InvestigatorAgent:
    """
    InvestigatorAgent - walks the user through today's pending items.

    `store` provides the tracking data (records, logs, history, plan changes).
    Narrator, item interpreter and decomposer default to the Gemini-backed
    agents, which fall back to deterministic behaviour without an API key.
    """

    def __init__(
        self,
        store,
        narrator: Optional[Narrator] = None,
        item_agent=None,
        decomposer: Optional[Decomposer] = None,
        policy: Optional[CheckupPolicy] = None,
        language: str = CHECKUP_LANGUAGE,
        clock: Optional[Callable[[], datetime]] = None,
        default_timezone: str = DEFAULT_TIMEZONE,
    ):
        self.store = store
        self.language = language
        self.policy = policy or CheckupPolicy()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.narrator = narrator or NarratorAgent(language)
        self.item_agent = item_agent or ItemAgent(language)
        self.decomposer = decomposer or DecomposerAgent(language)
        self.catalog = CatalogLoader(store, self.policy, default_timezone)
        self.resolver = TurnResolver(
            log_sink=store,
            history=store,
            plans=store,
            narrator=self.narrator,
            decomposer=self.decomposer,
            policy=self.policy,
            language=language,
            clock=self.clock,
        )

    def run(
        self,
        user_id: str,
        message: str,
        session: Union[CheckupSession, dict, None] = None,
        now: Optional[datetime] = None,
        last_message_at: Optional[datetime] = None,
        items: Optional[List[CheckupItem]] = None,
        model_output: Optional[ModelOutput] = None,
    ) -> TurnResult:
        """Process one user message and return the reply plus the next state."""
        now = now or self.clock()
        if isinstance(session, dict):
            session = CheckupSession.from_dict(session)

        with Tracer(user_id) as trace:
            result, scenario = self._turn(user_id, message or "", session, now, last_message_at,
                                          items, model_output)
            result.scenario = scenario
            trace.scenario = scenario
            current = result.session.current_item
            trace.item_id = current.id if current is not None else None
        return result

    # === Turn steps ===

    def _turn(self, user_id, message, session, now, last_message_at, items, model_output):
        active = session is not None and session.status == SessionStatus.IN_PROGRESS

        if active and intents.is_explicit_stop(message, self.language):
            return self._stop(session, message)

        if not active:
            if items is None:
                items = self.catalog.load_pending_items(user_id, now)
            session = session_machine.start_session(user_id, items, now)
            if not items:
                session_machine.close(session)
                data = {"user_message": message, "is_last": True}
                return self._closed(session, "no_pending_items", data)

        if session_machine.needs_opening(session):
            return self._opening(session, message, now, last_message_at)

        if session.is_exhausted:
            session_machine.close(session)
            return self._closed(session, "end_checkup_no_more_items", {"user_message": message, "is_last": True})

        return self._resolve(session, message, model_output)

    def _stop(self, session: CheckupSession, message: str):
        session_machine.close(session)
        stats = compute_checkup_stats(session, fill_unlogged_as_missed=True)
        logger.info(f"User {session.user_id} stopped the bilan at item {session.cursor + 1}/{len(session.items)}")
        data = {
            "user_message": message,
            "is_last": True,
            "completed": stats.completed,
            "missed": stats.missed,
            "items": stats.items,
        }
        text = narrate_or_template(self.narrator, "user_stopped_checkup", data, self.language)
        return TurnResult(content=text, session=session, stats=stats), "user_stopped_checkup"

    def _opening(self, session: CheckupSession, message: str, now: datetime,
                 last_message_at: Optional[datetime]):
        cold = session_machine.is_cold_relaunch(last_message_at, now, self.policy.cold_relaunch_hours)
        scenario = "opening_cold" if cold else "opening_ongoing"
        session_machine.mark_opening(session)
        first = session.current_item
        data = {
            "user_message": message,
            "items_count": len(session.items),
            "title": first.title,
            "day_scope": first.day_scope.value,
            "next_question": templates.item_question(first, self.language),
            "is_last": False,
        }
        text = narrate_or_template(self.narrator, scenario, data, self.language)
        return TurnResult(content=text, session=session), scenario

    def _closed(self, session: CheckupSession, scenario: str, data: dict):
        text = narrate_or_template(self.narrator, scenario, data, self.language)
        return TurnResult(content=text, session=session, stats=compute_checkup_stats(session)), scenario

    def _resolve(self, session: CheckupSession, message: str, model_output: Optional[ModelOutput]):
        working = copy.deepcopy(session)
        try:
            if working.aux.offer is not None:
                resolution = self.resolver.resolve(working, working.aux.offer.item_id, message, None)
            else:
                item = working.current_item
                if model_output is None:
                    history = self.store.recent_log_entries(working.user_id, item.id, HISTORY_FOR_PROMPT)
                    streak = self.resolver.streaks.missed_streak(working.user_id, item.id)
                    model_output = self.item_agent.interpret(item, message, history, streak)
                resolution = self.resolver.resolve(working, item.id, message, model_output)
        except Exception as e:
            logger.error(f"Checkup turn failed for {session.user_id}: {e}", exc_info=True)
            text = templates.render("technical_hiccup", {"user_message": message}, self.language)
            return TurnResult(content=text, session=session), "technical_hiccup"

        stats = compute_checkup_stats(resolution.session) if resolution.is_closed else None
        return TurnResult(content=resolution.message, session=resolution.session, stats=stats), resolution.scenario
