"""Deferred Offer Sub-flows.

Short consent dialogues superimposed on the bilan. At most one is active;
while it is, the cursor does not move.

    increase_weekly_target   consent -> (day of week)? -> target + 1
    breakdown_item           consent -> blocker -> proposal -> second accept -> sub-item
    activate_next_item       consent -> next pending item activated

An unclear answer is re-prompted a bounded number of times, then read as a
decline. A decline writes nothing and traversal resumes.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from config.settings import CheckupPolicy
from core.transitions import Resolution, Transitions
from models.checkup import (
    ActivateNextOffer,
    BreakdownOffer,
    CheckupItem,
    CheckupSession,
    IncreaseTargetAction,
    IncreaseTargetOffer,
    OfferStage,
)
from models.tracking import ProposedItem
from services.interfaces import Decomposer, PlanStore
from tools import intents
from tools.intents import Consent

logger = logging.getLogger(__name__)


class OfferFlows:
    """Opens and resolves deferred offers."""

    def __init__(self, transitions: Transitions, plans: PlanStore, decomposer: Decomposer,
                 policy: CheckupPolicy, language: str, clock: Optional[Callable[[], datetime]] = None):
        self.t = transitions
        self.plans = plans
        self.decomposer = decomposer
        self.policy = policy
        self.language = language
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # === Opening ===

    def open_activate_next(self, session: CheckupSession, item: CheckupItem,
                           data: Dict[str, Any], committed: bool = False) -> Resolution:
        session.aux.offer = ActivateNextOffer(
            item_id=item.id, item_title=item.title, weekly_target=item.weekly_target or 0,
        )
        if item.id not in session.aux.activation_offered:
            session.aux.activation_offered.append(item.id)
        data["weekly_target"] = item.weekly_target
        logger.info(f"Opened activate-next offer for {item.id}")
        return self.t.say(session, "weekly_target_reached_offer", data, committed)

    def open_increase(self, session: CheckupSession, item: CheckupItem, data: Dict[str, Any],
                      stage: OfferStage = OfferStage.AWAITING_CONSENT, committed: bool = False) -> Resolution:
        offer = IncreaseTargetOffer(
            item_id=item.id,
            item_title=item.title,
            current_target=item.weekly_target or 0,
            stage=stage,
            scheduled_days=tuple(item.scheduled_days),
        )
        session.aux.offer = offer
        data.update(current_target=offer.current_target, proposed_target=offer.current_target + 1)
        logger.info(f"Opened increase offer for {item.id} at stage {stage.value}")
        scenario = "increase_target_ask_day" if stage == OfferStage.AWAITING_DETAIL else "increase_target_offer"
        return self.t.say(session, scenario, data, committed)

    def open_breakdown(self, session: CheckupSession, item: CheckupItem, streak: int,
                       note: Optional[str], data: Dict[str, Any], committed: bool = False) -> Resolution:
        session.aux.offer = BreakdownOffer(
            item_id=item.id, item_title=item.title, streak_days=streak, last_note=(note or "").strip(),
        )
        data.update(streak_days=streak, last_note=(note or "").strip())
        logger.info(f"Opened breakdown offer for {item.id} (missed streak {streak})")
        return self.t.say(session, "missed_streak_offer_breakdown", data, committed)

    def handle_increase_request(self, session: CheckupSession, item: CheckupItem,
                                action: IncreaseTargetAction, message: str) -> Resolution:
        """The model asked to raise a weekly target while the item is being asked."""
        data = self.t.base_data(item, message)
        now = self.clock()
        target = item.weekly_target

        if target is None:
            return self.t.resume(session, item, "increase_target_not_applicable", data, now)
        if target >= self.policy.max_weekly_frequency:
            data["max_frequency"] = self.policy.max_weekly_frequency
            return self.t.resume(session, item, "increase_target_at_max", data, now)
        if not action.consented:
            return self.open_increase(session, item, data)

        if item.scheduled_days:
            day = action.day if action.day in intents.DAY_CODES else None
            if day is None or day in item.scheduled_days:
                return self.open_increase(session, item, data, stage=OfferStage.AWAITING_DETAIL)
            return self._apply_increase(session, item, day, data)
        return self._apply_increase(session, item, None, data)

    # === Resolution ===

    def handle(self, session: CheckupSession, message: str) -> Resolution:
        offer = session.aux.offer
        item = session.item(offer.item_id)
        if item is None:
            logger.warning(f"Offer for unknown item {offer.item_id} dropped")
            session.aux.offer = None
            current = session.current_item
            data = self.t.base_data(current, message, next_question=self.t.question(current))
            return self.t.say(session, "ask_item", data)

        if isinstance(offer, IncreaseTargetOffer):
            return self._handle_increase(session, item, offer, message)
        if isinstance(offer, BreakdownOffer):
            return self._handle_breakdown(session, item, offer, message)
        return self._handle_activate(session, item, offer, message)

    def _consent_or_reprompt(self, session, offer, message: str, data: Dict[str, Any]):
        """Returns (consent, resolution). A resolution is set only for a re-prompt."""
        consent = intents.classify_consent(message, self.language)
        if consent != Consent.UNCLEAR:
            return consent, None
        if offer.reprompts < self.policy.max_consent_reprompts:
            offer.reprompts += 1
            return consent, self.t.say(session, "offer_clarify", data)
        logger.info(f"Unclear answer after {offer.reprompts} re-prompts, treating {offer.kind.value} as declined")
        return Consent.NO, None

    def _handle_increase(self, session, item, offer: IncreaseTargetOffer, message: str) -> Resolution:
        data = self.t.base_data(item, message, current_target=offer.current_target,
                                proposed_target=offer.current_target + 1)

        if offer.stage == OfferStage.AWAITING_CONSENT:
            consent, reprompt = self._consent_or_reprompt(session, offer, message, data)
            if reprompt is not None:
                return reprompt
            if consent == Consent.NO:
                return self._decline_increase(session, item, data)
            if offer.needs_day:
                offer.stage = OfferStage.AWAITING_DETAIL
                offer.reprompts = 0
                return self.t.say(session, "increase_target_ask_day", data)
            return self._apply_increase(session, item, None, data)

        day = intents.parse_day_of_week(message, self.language)
        if day is not None and day not in offer.scheduled_days:
            return self._apply_increase(session, item, day, data)
        if day is None and intents.classify_consent(message, self.language) == Consent.NO:
            return self._decline_increase(session, item, data)
        if offer.reprompts < self.policy.max_consent_reprompts:
            offer.reprompts += 1
            return self.t.say(session, "offer_detail_reprompt", data)

        logger.info(f"No usable day for {item.id}, increase abandoned")
        session.aux.offer = None
        return self.t.resume(session, item, "increase_target_declined", data, self.clock())

    def _apply_increase(self, session, item, day: Optional[str], data: Dict[str, Any]) -> Resolution:
        new_target = self.plans.increase_weekly_target(session.user_id, item.id, day)
        session.aux.offer = None
        data.update(new_target=new_target, day=day)
        return self.t.resume(session, item, "increase_target_done", data, self.clock(), committed=True)

    def _decline_increase(self, session, item, data: Dict[str, Any]) -> Resolution:
        session.aux.offer = None
        if item.id not in session.aux.declined_increases:
            session.aux.declined_increases.append(item.id)
        return self.t.resume(session, item, "increase_target_declined", data, self.clock())

    def _handle_breakdown(self, session, item, offer: BreakdownOffer, message: str) -> Resolution:
        data = self.t.base_data(item, message, streak_days=offer.streak_days)

        if offer.stage == OfferStage.AWAITING_CONSENT:
            consent, reprompt = self._consent_or_reprompt(session, offer, message, data)
            if reprompt is not None:
                return reprompt
            if consent == Consent.NO:
                return self._decline_breakdown(session, item, data)
            offer.stage = OfferStage.AWAITING_DETAIL
            offer.reprompts = 0
            return self.t.say(session, "breakdown_ask_blocker", data)

        if offer.stage == OfferStage.AWAITING_DETAIL:
            blocker = (message or "").strip()[:self.policy.note_max_chars] or offer.last_note
            proposal = self.decomposer.propose_smaller_version(item, blocker)
            offer.blocker = blocker
            offer.proposal = proposal.to_dict()
            offer.stage = OfferStage.AWAITING_CONFIRMATION
            data.update(proposal_title=proposal.title, proposal_description=proposal.description,
                        tip=proposal.tip)
            return self.t.say(session, "breakdown_propose_step", data)

        proposal = ProposedItem.from_dict(offer.proposal or {})
        data.update(proposal_title=proposal.title, proposal_description=proposal.description, tip=proposal.tip)
        consent, reprompt = self._consent_or_reprompt(session, offer, message, data)
        if reprompt is not None:
            return reprompt
        if consent == Consent.NO:
            return self._decline_breakdown(session, item, data)

        new_id = self.plans.create_sub_item(session.user_id, item.id, proposal)
        session.aux.offer = None
        data["sub_item_id"] = new_id
        return self.t.resume(session, item, "breakdown_committed", data, self.clock(), committed=True)

    def _decline_breakdown(self, session, item, data: Dict[str, Any]) -> Resolution:
        session.aux.offer = None
        if item.id not in session.aux.declined_breakdowns:
            session.aux.declined_breakdowns.append(item.id)
        return self.t.resume(session, item, "breakdown_declined", data, self.clock())

    def _handle_activate(self, session, item, offer: ActivateNextOffer, message: str) -> Resolution:
        data = self.t.base_data(item, message, weekly_target=offer.weekly_target)
        consent, reprompt = self._consent_or_reprompt(session, offer, message, data)
        if reprompt is not None:
            return reprompt

        session.aux.offer = None
        if consent == Consent.NO:
            return self.t.resume(session, item, "activate_next_declined", data, self.clock())

        activated = self.plans.activate_next_item(session.user_id, item.id)
        if activated is None:
            return self.t.resume(session, item, "activate_next_none", data, self.clock(), committed=True)
        data["next_title"] = activated.title
        return self.t.resume(session, item, "activate_next_done", data, self.clock(), committed=True)
