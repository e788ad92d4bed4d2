"""Bilan Data Models.

This module contains the dataclasses and enums describing a checkup session.

Models:
    CheckupItem: One trackable unit (habit, vital, exercise), frozen at session start.
    ItemProgress: Per-item phase tracker.
    CheckupSession: Session lifecycle, item list, cursor and aux state.
    SessionAux: Named side-state (progress map, streak cache, vital cache, offer).
    IncreaseTargetOffer / BreakdownOffer / ActivateNextOffer: Deferred offer variants.
    LogAction / IncreaseTargetAction / FreeText: Model output variants.
    TurnResult: Outgoing message plus next session state.
    TrackedRecord / LogEntry / LogOutcome: Records exchanged with persistence.
"""
from models.checkup import (
    ItemKind,
    ValueKind,
    DayScope,
    WeeklyTargetStatus,
    ItemPhase,
    SessionStatus,
    LogStatus,
    OfferKind,
    OfferStage,
    CheckupItem,
    ItemProgress,
    VitalSnapshot,
    IncreaseTargetOffer,
    BreakdownOffer,
    ActivateNextOffer,
    DeferredOffer,
    SessionAux,
    CheckupSession,
    LogAction,
    IncreaseTargetAction,
    FreeText,
    ModelOutput,
    CheckupStats,
    TurnResult,
)
from models.tracking import (
    RecordStatus,
    LogWrite,
    TrackedRecord,
    LogEntry,
    LogOutcome,
    LevelUp,
    ProposedItem,
)

__all__ = [
    "ItemKind",
    "ValueKind",
    "DayScope",
    "WeeklyTargetStatus",
    "ItemPhase",
    "SessionStatus",
    "LogStatus",
    "OfferKind",
    "OfferStage",
    "CheckupItem",
    "ItemProgress",
    "VitalSnapshot",
    "IncreaseTargetOffer",
    "BreakdownOffer",
    "ActivateNextOffer",
    "DeferredOffer",
    "SessionAux",
    "CheckupSession",
    "LogAction",
    "IncreaseTargetAction",
    "FreeText",
    "ModelOutput",
    "CheckupStats",
    "TurnResult",
    "RecordStatus",
    "LogWrite",
    "TrackedRecord",
    "LogEntry",
    "LogOutcome",
    "LevelUp",
    "ProposedItem",
]
