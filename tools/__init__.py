"""Bilan Tools Module.

This module contains the deterministic, side-effect free helpers of the checkup engine.

Tools:
    is_explicit_stop: Detect an explicit request to stop the bilan.
    classify_consent: Classify a free-text answer as yes / no / unclear.
    says_done / says_not_done: Lexical done / not-done detection.
    parse_day_of_week: Map a day name to a "mon".."sun" code.
    missed_streak / completed_streak: Run lengths over observed history.
    compute_checkup_stats: Completed / missed / logged counts for a session.
    vital_tone: Pick the register of a vital transition message.
"""
from tools.intents import (
    Consent,
    is_explicit_stop,
    classify_consent,
    says_done,
    says_not_done,
    says_partial,
    wants_target_increase,
    is_follow_up_question,
    parse_day_of_week,
    extract_number,
)
from tools.streaks import missed_streak, completed_streak, StreakAnalyzer
from tools.checkup_stats import compute_checkup_stats
from tools.vitals import vital_tone

__all__ = [
    "Consent",
    "is_explicit_stop",
    "classify_consent",
    "says_done",
    "says_not_done",
    "says_partial",
    "wants_target_increase",
    "is_follow_up_question",
    "parse_day_of_week",
    "extract_number",
    "missed_streak",
    "completed_streak",
    "StreakAnalyzer",
    "compute_checkup_stats",
    "vital_tone",
]
