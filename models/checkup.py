from typing import Dict, List, Any, Optional, Tuple, Union, ClassVar
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum


class ItemKind(Enum):
    ACTION = "action"
    VITAL = "vital"
    EXERCISE = "exercise"


class ValueKind(Enum):
    BOOLEAN = "boolean"
    NUMERIC = "numeric"


class DayScope(Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"


class WeeklyTargetStatus(Enum):
    BELOW = "below"
    AT_TARGET = "at_target"
    EXCEEDED = "exceeded"


class ItemPhase(Enum):
    NOT_STARTED = "not_started"
    AWAITING_ANSWER = "awaiting_answer"
    AWAITING_REASON = "awaiting_reason"
    BREAKDOWN_OFFER_PENDING = "breakdown_offer_pending"
    LOGGED = "logged"


class SessionStatus(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


class LogStatus(Enum):
    COMPLETED = "completed"
    MISSED = "missed"
    PARTIAL = "partial"


class OfferKind(Enum):
    INCREASE_WEEKLY_TARGET = "increase_weekly_target"
    BREAKDOWN_ITEM = "breakdown_item"
    ACTIVATE_NEXT_ITEM = "activate_next_item"


class OfferStage(Enum):
    AWAITING_CONSENT = "awaiting_consent"
    AWAITING_DETAIL = "awaiting_detail"        # day-of-week or "what blocked you"
    AWAITING_CONFIRMATION = "awaiting_confirmation"  # second accept of a proposal


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass(frozen=True)
class CheckupItem:
    """One trackable unit of a checkup. Frozen once the session list is locked."""
    id: str
    kind: ItemKind
    title: str
    description: str = ""
    value_kind: ValueKind = ValueKind.BOOLEAN
    target_quantity: Optional[float] = None
    current_quantity: Optional[float] = None
    unit: Optional[str] = None
    scheduled_days: Tuple[str, ...] = ()     # "mon".."sun", empty = every day
    day_scope: DayScope = DayScope.YESTERDAY
    is_weekly_habit: bool = False
    weekly_target_status: Optional[WeeklyTargetStatus] = None
    time_of_day: Optional[str] = None

    @property
    def is_boolean(self) -> bool:
        return self.value_kind == ValueKind.BOOLEAN

    @property
    def weekly_target(self) -> Optional[int]:
        if not self.is_weekly_habit or self.target_quantity is None:
            return None
        return int(self.target_quantity)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "title": self.title,
            "description": self.description,
            "value_kind": self.value_kind.value,
            "target_quantity": self.target_quantity,
            "current_quantity": self.current_quantity,
            "unit": self.unit,
            "scheduled_days": list(self.scheduled_days),
            "day_scope": self.day_scope.value,
            "is_weekly_habit": self.is_weekly_habit,
            "weekly_target_status": self.weekly_target_status.value if self.weekly_target_status else None,
            "time_of_day": self.time_of_day,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CheckupItem":
        status = data.get("weekly_target_status")
        return cls(
            id=str(data["id"]),
            kind=ItemKind(data["kind"]),
            title=data.get("title", ""),
            description=data.get("description") or "",
            value_kind=ValueKind(data.get("value_kind", ValueKind.BOOLEAN.value)),
            target_quantity=data.get("target_quantity"),
            current_quantity=data.get("current_quantity"),
            unit=data.get("unit"),
            scheduled_days=tuple(data.get("scheduled_days") or ()),
            day_scope=DayScope(data.get("day_scope", DayScope.YESTERDAY.value)),
            is_weekly_habit=bool(data.get("is_weekly_habit", False)),
            weekly_target_status=WeeklyTargetStatus(status) if status else None,
            time_of_day=data.get("time_of_day"),
        )


@dataclass
class ItemProgress:
    """Per-item phase tracker. Phases only move forward (see core.item_progress)."""
    phase: ItemPhase = ItemPhase.NOT_STARTED
    digression_count: int = 0
    last_question_kind: Optional[str] = None
    logged_at: Optional[datetime] = None
    logged_status: Optional[str] = None   # LogStatus value, or "skipped" (never written)

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "digression_count": self.digression_count,
            "last_question_kind": self.last_question_kind,
            "logged_at": _iso(self.logged_at),
            "logged_status": self.logged_status,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ItemProgress":
        return cls(
            phase=ItemPhase(data.get("phase", ItemPhase.NOT_STARTED.value)),
            digression_count=int(data.get("digression_count", 0)),
            last_question_kind=data.get("last_question_kind"),
            logged_at=_parse_dt(data.get("logged_at")),
            logged_status=data.get("logged_status"),
        )


@dataclass
class VitalSnapshot:
    """Last-known progression of a numeric vital, used only for copy tone."""
    previous: Optional[float]
    current: Optional[float]
    target: Optional[float]
    tone: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "VitalSnapshot":
        return cls(**data)


# === Deferred offers (tagged by `kind`) ===

@dataclass
class IncreaseTargetOffer:
    item_id: str
    item_title: str
    current_target: int
    stage: OfferStage = OfferStage.AWAITING_CONSENT
    scheduled_days: Tuple[str, ...] = ()
    reprompts: int = 0

    kind: ClassVar[OfferKind] = OfferKind.INCREASE_WEEKLY_TARGET

    @property
    def needs_day(self) -> bool:
        return len(self.scheduled_days) > 0


@dataclass
class BreakdownOffer:
    item_id: str
    item_title: str
    streak_days: int
    last_note: str = ""
    stage: OfferStage = OfferStage.AWAITING_CONSENT
    blocker: Optional[str] = None
    proposal: Optional[Dict[str, str]] = None
    reprompts: int = 0

    kind: ClassVar[OfferKind] = OfferKind.BREAKDOWN_ITEM


@dataclass
class ActivateNextOffer:
    item_id: str
    item_title: str
    weekly_target: int
    stage: OfferStage = OfferStage.AWAITING_CONSENT
    reprompts: int = 0

    kind: ClassVar[OfferKind] = OfferKind.ACTIVATE_NEXT_ITEM


DeferredOffer = Union[IncreaseTargetOffer, BreakdownOffer, ActivateNextOffer]

_OFFER_TYPES = {
    OfferKind.INCREASE_WEEKLY_TARGET: IncreaseTargetOffer,
    OfferKind.BREAKDOWN_ITEM: BreakdownOffer,
    OfferKind.ACTIVATE_NEXT_ITEM: ActivateNextOffer,
}


def offer_to_dict(offer: DeferredOffer) -> dict:
    data = asdict(offer)
    data["kind"] = offer.kind.value
    data["stage"] = offer.stage.value
    if "scheduled_days" in data:
        data["scheduled_days"] = list(data["scheduled_days"])
    return data


def offer_from_dict(data: dict) -> DeferredOffer:
    payload = dict(data)
    offer_type = _OFFER_TYPES[OfferKind(payload.pop("kind"))]
    payload["stage"] = OfferStage(payload.get("stage", OfferStage.AWAITING_CONSENT.value))
    if "scheduled_days" in payload:
        payload["scheduled_days"] = tuple(payload["scheduled_days"] or ())
    return offer_type(**payload)


@dataclass
class SessionAux:
    """Named side-state of a checkup, one field per concern."""
    progress: Dict[str, ItemProgress] = field(default_factory=dict)
    missed_streaks: Dict[str, int] = field(default_factory=dict)
    vital_snapshots: Dict[str, VitalSnapshot] = field(default_factory=dict)
    offer: Optional[DeferredOffer] = None
    opening_done: bool = False
    declined_breakdowns: List[str] = field(default_factory=list)
    declined_increases: List[str] = field(default_factory=list)
    activation_offered: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "progress": {k: v.to_dict() for k, v in self.progress.items()},
            "missed_streaks": dict(self.missed_streaks),
            "vital_snapshots": {k: v.to_dict() for k, v in self.vital_snapshots.items()},
            "offer": offer_to_dict(self.offer) if self.offer is not None else None,
            "opening_done": self.opening_done,
            "declined_breakdowns": list(self.declined_breakdowns),
            "declined_increases": list(self.declined_increases),
            "activation_offered": list(self.activation_offered),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionAux":
        offer = data.get("offer")
        return cls(
            progress={k: ItemProgress.from_dict(v) for k, v in (data.get("progress") or {}).items()},
            missed_streaks={k: int(v) for k, v in (data.get("missed_streaks") or {}).items()},
            vital_snapshots={k: VitalSnapshot.from_dict(v) for k, v in (data.get("vital_snapshots") or {}).items()},
            offer=offer_from_dict(offer) if offer else None,
            opening_done=bool(data.get("opening_done", False)),
            declined_breakdowns=list(data.get("declined_breakdowns") or []),
            declined_increases=list(data.get("declined_increases") or []),
            activation_offered=list(data.get("activation_offered") or []),
        )


@dataclass
class CheckupSession:
    """One active bilan: frozen item list, forward-only cursor, aux state."""
    user_id: str
    items: List[CheckupItem] = field(default_factory=list)
    status: SessionStatus = SessionStatus.NOT_STARTED
    cursor: int = 0
    started_at: Optional[datetime] = None
    aux: SessionAux = field(default_factory=SessionAux)

    @property
    def current_item(self) -> Optional[CheckupItem]:
        if 0 <= self.cursor < len(self.items):
            return self.items[self.cursor]
        return None

    @property
    def is_exhausted(self) -> bool:
        return self.cursor >= len(self.items)

    def item(self, item_id: str) -> Optional[CheckupItem]:
        for it in self.items:
            if it.id == item_id:
                return it
        return None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "items": [it.to_dict() for it in self.items],
            "status": self.status.value,
            "cursor": self.cursor,
            "started_at": _iso(self.started_at),
            "aux": self.aux.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CheckupSession":
        return cls(
            user_id=str(data["user_id"]),
            items=[CheckupItem.from_dict(it) for it in data.get("items") or []],
            status=SessionStatus(data.get("status", SessionStatus.NOT_STARTED.value)),
            cursor=int(data.get("cursor", 0)),
            started_at=_parse_dt(data.get("started_at")),
            aux=SessionAux.from_dict(data.get("aux") or {}),
        )


# === Model output variants ===

@dataclass
class LogAction:
    """Structured logging action produced by the model."""
    status: LogStatus
    value: Optional[float] = None
    note: Optional[str] = None


@dataclass
class IncreaseTargetAction:
    """Structured weekly-target-increase request produced by the model."""
    consented: bool = False
    day: Optional[str] = None


@dataclass
class FreeText:
    """Plain model text: a digression reply or a follow-up question."""
    text: str


ModelOutput = Union[LogAction, IncreaseTargetAction, FreeText]


@dataclass
class CheckupStats:
    items: int = 0
    completed: int = 0
    missed: int = 0
    logged: int = 0


@dataclass
class TurnResult:
    """What a turn hands back to the caller."""
    content: str
    session: CheckupSession
    stats: Optional[CheckupStats] = None
    scenario: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.session.status == SessionStatus.CLOSED

    def state_to_persist(self) -> Optional[dict]:
        """Serialized state for the next turn, or None once the session closed."""
        if self.is_closed:
            return None
        return self.session.to_dict()
