"""Item Progress State Machine.

Each checkup item carries an ItemProgress whose phase only moves forward:

    not_started < awaiting_answer < awaiting_reason | breakdown_offer_pending < logged

Transitions are driven by events looked up in TRANSITIONS. A (phase, event)
pair missing from the table is illegal and leaves the progress untouched.
"""
import logging
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from models.checkup import CheckupItem, CheckupSession, ItemPhase, ItemProgress

logger = logging.getLogger(__name__)


class ProgressEvent(Enum):
    ASK = "ask"
    ASK_REASON = "ask_reason"
    OFFER_BREAKDOWN = "offer_breakdown"
    LOG = "log"
    DIGRESS = "digress"


PHASE_RANK: Dict[ItemPhase, int] = {
    ItemPhase.NOT_STARTED: 0,
    ItemPhase.AWAITING_ANSWER: 1,
    ItemPhase.AWAITING_REASON: 2,
    ItemPhase.BREAKDOWN_OFFER_PENDING: 2,
    ItemPhase.LOGGED: 3,
}

TRANSITIONS: Dict[Tuple[ItemPhase, ProgressEvent], ItemPhase] = {
    (ItemPhase.NOT_STARTED, ProgressEvent.ASK): ItemPhase.AWAITING_ANSWER,
    (ItemPhase.AWAITING_ANSWER, ProgressEvent.ASK): ItemPhase.AWAITING_ANSWER,
    (ItemPhase.NOT_STARTED, ProgressEvent.DIGRESS): ItemPhase.AWAITING_ANSWER,
    (ItemPhase.AWAITING_ANSWER, ProgressEvent.DIGRESS): ItemPhase.AWAITING_ANSWER,
    (ItemPhase.AWAITING_ANSWER, ProgressEvent.ASK_REASON): ItemPhase.AWAITING_REASON,
    (ItemPhase.AWAITING_REASON, ProgressEvent.DIGRESS): ItemPhase.AWAITING_REASON,
    (ItemPhase.AWAITING_ANSWER, ProgressEvent.OFFER_BREAKDOWN): ItemPhase.BREAKDOWN_OFFER_PENDING,
    (ItemPhase.AWAITING_REASON, ProgressEvent.OFFER_BREAKDOWN): ItemPhase.BREAKDOWN_OFFER_PENDING,
    (ItemPhase.NOT_STARTED, ProgressEvent.LOG): ItemPhase.LOGGED,
    (ItemPhase.AWAITING_ANSWER, ProgressEvent.LOG): ItemPhase.LOGGED,
    (ItemPhase.AWAITING_REASON, ProgressEvent.LOG): ItemPhase.LOGGED,
    (ItemPhase.BREAKDOWN_OFFER_PENDING, ProgressEvent.LOG): ItemPhase.LOGGED,
}


def initialize_progress(items: Iterable[CheckupItem]) -> Dict[str, ItemProgress]:
    """Bulk-create a not_started progress entry per item."""
    return {item.id: ItemProgress() for item in items}


def get_progress(session: CheckupSession, item_id: str) -> ItemProgress:
    progress = session.aux.progress.get(item_id)
    if progress is None:
        return ItemProgress()
    return progress


def is_forward(current: ItemPhase, target: ItemPhase) -> bool:
    return PHASE_RANK[target] >= PHASE_RANK[current]


def update(session: CheckupSession, item_id: str, **changes) -> CheckupSession:
    """Merge `changes` into the item's progress.

    A backward phase change is rejected: a warning is logged and the session
    comes back unmodified.
    """
    current = get_progress(session, item_id)
    target_phase = changes.get("phase")
    if target_phase is not None and not is_forward(current.phase, target_phase):
        logger.warning(
            f"Rejected backward transition for item {item_id}: "
            f"{current.phase.value} -> {target_phase.value}"
        )
        return session
    session.aux.progress[item_id] = replace(current, **changes)
    return session


def apply_event(
    session: CheckupSession,
    item_id: str,
    event: ProgressEvent,
    *,
    question_kind: Optional[str] = None,
    logged_status: Optional[str] = None,
    logged_at: Optional[datetime] = None,
) -> CheckupSession:
    """Drive the item's phase through the transition table."""
    current = get_progress(session, item_id)
    next_phase = TRANSITIONS.get((current.phase, event))
    if next_phase is None:
        logger.warning(
            f"Illegal progress event {event.value} for item {item_id} in phase {current.phase.value}"
        )
        return session

    changes = {"phase": next_phase}
    if event == ProgressEvent.DIGRESS:
        changes["digression_count"] = current.digression_count + 1
    if question_kind is not None:
        changes["last_question_kind"] = question_kind
    if event == ProgressEvent.LOG:
        changes["logged_status"] = logged_status or current.logged_status
        changes["logged_at"] = logged_at or current.logged_at or datetime.now()
    return update(session, item_id, **changes)


def mark_logged_status(
    session: CheckupSession, item_id: str, status: Optional[str], logged_at: datetime
) -> CheckupSession:
    """Record a log outcome without closing the item (an offer is still pending)."""
    return update(session, item_id, logged_status=status, logged_at=logged_at)
