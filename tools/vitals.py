"""Tone selection for numeric vitals.

Compares a new value to the previous one and to the target. Only picks the
register of the transition message; nothing downstream branches on it.
"""
from typing import Optional

ENCOURAGING = "encouraging"
NEUTRAL = "neutral"
NON_JUDGMENTAL = "non_judgmental"


def vital_tone(new_value: Optional[float], previous: Optional[float], target: Optional[float]) -> str:
    if new_value is None or previous is None:
        return NEUTRAL

    if target is not None:
        before = abs(previous - target)
        after = abs(new_value - target)
        if after < before:
            return ENCOURAGING
        if after > before:
            return NON_JUDGMENTAL
        return NEUTRAL

    # No target: stable is fine, any move is reported without judgment.
    return NEUTRAL if new_value == previous else NON_JUDGMENTAL
