"""Checkup Session State Machine.

not_started -> in_progress -> closed. The item list is frozen at start and
the cursor only moves forward. A session closes exactly when the cursor
reaches the end of the list and no deferred offer is pending.
"""
import logging
from datetime import datetime
from typing import List, Optional

from core import item_progress
from core.item_progress import ProgressEvent
from models.checkup import CheckupItem, CheckupSession, SessionAux, SessionStatus

logger = logging.getLogger(__name__)


def start_session(user_id: str, items: List[CheckupItem], now: datetime) -> CheckupSession:
    """Create an in-progress session over a frozen copy of `items`."""
    session = CheckupSession(
        user_id=user_id,
        items=list(items),
        status=SessionStatus.IN_PROGRESS,
        cursor=0,
        started_at=now,
        aux=SessionAux(progress=item_progress.initialize_progress(items)),
    )
    logger.info(f"Started checkup for {user_id} with {len(items)} items")
    return session


def needs_opening(session: CheckupSession) -> bool:
    return session.cursor == 0 and not session.aux.opening_done and bool(session.items)


def mark_opening(session: CheckupSession) -> CheckupSession:
    """Flag the opening as emitted and put the first item in awaiting_answer."""
    session.aux.opening_done = True
    first = session.current_item
    if first is not None:
        item_progress.apply_event(session, first.id, ProgressEvent.ASK, question_kind="opening")
    return session


def is_cold_relaunch(last_message_at: Optional[datetime], now: datetime, threshold_hours: int) -> bool:
    if last_message_at is None:
        return True
    return (now - last_message_at).total_seconds() >= threshold_hours * 3600


def advance(session: CheckupSession) -> CheckupSession:
    """Move the cursor by one; close the session when the list is exhausted.

    With a deferred offer pending, the cursor stays put.
    """
    if session.aux.offer is not None:
        logger.warning(
            f"Cursor held at {session.cursor} for {session.user_id}: "
            f"{session.aux.offer.kind.value} offer pending"
        )
        return session
    if session.status == SessionStatus.CLOSED:
        return session

    session.cursor = min(session.cursor + 1, len(session.items))
    if session.is_exhausted:
        close(session)
    else:
        nxt = session.current_item
        item_progress.apply_event(session, nxt.id, ProgressEvent.ASK, question_kind="item")
    return session


def close(session: CheckupSession) -> CheckupSession:
    session.status = SessionStatus.CLOSED
    session.aux.offer = None
    logger.info(f"Closed checkup for {session.user_id} at cursor {session.cursor}/{len(session.items)}")
    return session
