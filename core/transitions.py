"""Shared turn endings: closing an item, advancing, and narrating the result."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from config.settings import CheckupPolicy
from core import item_progress, session_machine
from core.item_progress import ProgressEvent
from models.checkup import CheckupItem, CheckupSession, ItemPhase, SessionStatus
from services.interfaces import Narrator
from tools import templates

logger = logging.getLogger(__name__)

# Item transitions whose wording becomes the generic closing on the last item.
PLAIN_TRANSITIONS = {
    "action_completed_transition",
    "action_partial_transition",
    "action_missed_transition",
    "vital_logged_transition",
    "item_skipped_transition",
}

END_VARIANTS = {
    "win_streak_continue": "win_streak_end",
}


def narrate_or_template(narrator, scenario: str, data: Dict[str, Any], language: str) -> str:
    """Narrate, falling back to the deterministic template on any narrator failure."""
    try:
        text = narrator.narrate(scenario, data)
        if text and text.strip():
            return text
        logger.warning(f"Empty narration for {scenario}, using template")
    except Exception as e:
        logger.warning(f"Narrator failed for {scenario}, using template: {e}")
    return templates.render(scenario, data, language)


@dataclass
class Resolution:
    """Next session state plus the outgoing message of one turn."""
    session: CheckupSession
    message: str
    scenario: str

    @property
    def is_closed(self) -> bool:
        return self.session.status == SessionStatus.CLOSED


class Transitions:
    """Narration-aware helpers shared by the resolver and the offer flows."""

    def __init__(self, narrator: Narrator, policy: CheckupPolicy, language: str):
        self.narrator = narrator
        self.policy = policy
        self.language = language

    def question(self, item: Optional[CheckupItem]) -> str:
        return templates.item_question(item, self.language)

    def base_data(self, item: Optional[CheckupItem], message: str, **extra) -> Dict[str, Any]:
        data: Dict[str, Any] = {"user_message": message}
        if item is not None:
            data.update({
                "title": item.title,
                "item_kind": item.kind.value,
                "day_scope": item.day_scope.value,
                "unit": item.unit,
            })
        data.update(extra)
        return data

    def narrate(self, scenario: str, data: Dict[str, Any], committed: bool = False) -> str:
        """Narrator failures propagate unless the turn already wrote to the log or the plan.

        A failed turn is retried from the incoming state, so after a write the
        reply must come back even if it is only the template.
        """
        if committed:
            return narrate_or_template(self.narrator, scenario, data, self.language)
        return self.narrator.narrate(scenario, data)

    def say(self, session: CheckupSession, scenario: str, data: Dict[str, Any],
            committed: bool = False) -> Resolution:
        """Narrate without changing the cursor."""
        return Resolution(session, self.narrate(scenario, data, committed), scenario)

    def close_item(self, session: CheckupSession, item: CheckupItem, logged_at: datetime,
                   status: Optional[str] = None) -> CheckupSession:
        if item_progress.get_progress(session, item.id).phase != ItemPhase.LOGGED:
            item_progress.apply_event(session, item.id, ProgressEvent.LOG,
                                      logged_status=status, logged_at=logged_at)
        return session

    def move_on(self, session: CheckupSession, item: CheckupItem, scenario: str,
                data: Dict[str, Any], committed: bool = False) -> Resolution:
        """Advance past `item` and narrate, switching to a closing when the list is done."""
        current = session.current_item
        if current is not None and current.id == item.id:
            session_machine.advance(session)
        else:
            logger.warning(f"Item {item.id} resolved while the cursor is on another item, cursor kept")

        if session.status == SessionStatus.CLOSED:
            data["next_question"] = ""
            data["is_last"] = True
            if scenario in PLAIN_TRANSITIONS:
                data["last_item_scenario"] = scenario
                scenario = "end_checkup_after_last_log"
            scenario = END_VARIANTS.get(scenario, scenario)
            return Resolution(session, narrate_or_template(self.narrator, scenario, data, self.language), scenario)

        data["next_question"] = self.question(session.current_item)
        data["is_last"] = False
        return self.say(session, scenario, data, committed)

    def resume(self, session: CheckupSession, item: CheckupItem, scenario: str,
               data: Dict[str, Any], logged_at: datetime, committed: bool = False) -> Resolution:
        """Continue after a resolved offer: move on if the item is done, else ask it again."""
        progress = item_progress.get_progress(session, item.id)
        if progress.phase == ItemPhase.BREAKDOWN_OFFER_PENDING:
            self.close_item(session, item, logged_at)
            progress = item_progress.get_progress(session, item.id)

        current = session.current_item
        if progress.phase == ItemPhase.LOGGED and current is not None and current.id == item.id:
            return self.move_on(session, item, scenario, data, committed)

        data["next_question"] = self.question(current)
        data["is_last"] = current is None
        return self.say(session, scenario, data, committed)
