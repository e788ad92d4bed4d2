"""Intent detection tables.

Pure functions over raw user text. Every function takes the language
explicitly ("fr" or "en"); unknown languages fall back to French tables.
"""
import re
from enum import Enum
from typing import Dict, Optional, Pattern

DAY_CODES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class Consent(Enum):
    YES = "yes"
    NO = "no"
    UNCLEAR = "unclear"


def _rx(pattern: str) -> Pattern:
    return re.compile(pattern, re.IGNORECASE)


# "plus tard" / "later" defer an item, they never cancel the bilan.
STOP_PATTERNS: Dict[str, Pattern] = {
    "fr": _rx(
        r"\b(?:stop|pause|arr[êe]te|arr[êe]tons|annule|annulons|on\s+arr[êe]te|"
        r"on\s+peut\s+arr[êe]ter|je\s+veux\s+arr[êe]ter|c'est\s+trop|c'est\s+lourd|"
        r"arr[êe]te\s+le\s+bilan|stop\s+le\s+bilan|pas\s+de\s+bilan)\b"
    ),
    # Whole-message commands or phrases aimed at the checkup itself: "not enough
    # time" or "a pause at work" are answers.
    "en": _rx(
        r"^(?:stop|cancel|quit)\b|"
        r"\b(?:let'?s\s+stop|i\s+want\s+to\s+stop|stop\s+the\s+check-?up|cancel\s+the\s+check-?up|"
        r"no\s+more\s+check-?up|end\s+the\s+check-?up)\b"
    ),
}

YES_PATTERNS: Dict[str, Pattern] = {
    "fr": _rx(r"\b(?:oui|ouais|ok|okay|d'accord|dac|vas[- ]?y|go|let'?s\s+go|carr[ée]|yep|yes|volontiers|carrément)\b"),
    "en": _rx(r"\b(?:yes|yeah|yep|ok|okay|sure|go|let'?s\s+go|sounds\s+good|of\s+course|why\s+not)\b"),
}

NO_PATTERNS: Dict[str, Pattern] = {
    "fr": _rx(r"\b(?:non|nope|nan|laisse|pas\s+besoin|stop|on\s+laisse|plus\s+tard|pas\s+maintenant)\b"),
    "en": _rx(r"\b(?:no|nope|nah|not\s+now|no\s+need|later|skip\s+it|leave\s+it)\b"),
}

DONE_PATTERNS: Dict[str, Pattern] = {
    "fr": _rx(r"\b(?:fait|ok|c'est\s+fait|j'ai\s+fait|termin[ée]e?|r[ée]ussi|oui|ouais)\b"),
    "en": _rx(r"\b(?:done|did\s+it|i\s+did|finished|completed|made\s+it|yes|yeah|yep)\b"),
}

NOT_DONE_PATTERNS: Dict[str, Pattern] = {
    "fr": _rx(
        r"\b(?:pas\s+fait|pas\s+r[ée]ussi|rat[ée]|non|j'ai\s+pas\s+fait|"
        r"pas\s+aujourd'hui|pas\s+hier)\b"
    ),
    "en": _rx(
        r"\b(?:not\s+done|didn'?t|did\s+not|missed|failed|no|nope|skipped|not\s+today|not\s+yesterday)\b"
    ),
}

PARTIAL_PATTERNS: Dict[str, Pattern] = {
    "fr": _rx(r"(?:\bun\s+peu\b|[àa]\s+moiti[ée]|\bpartiellement\b|\ben\s+partie\b|\bpas\s+compl[èe]tement\b|\bpas\s+tout\b)"),
    "en": _rx(r"\b(?:a\s+bit|partly|partially|half|some\s+of\s+it|not\s+fully|not\s+completely)\b"),
}

INCREASE_PATTERNS: Dict[str, Pattern] = {
    "fr": _rx(r"\b(?:augmente[rz]?|rajoute[rz]?|ajoute[rz]?\s+un\s+jour|une\s+fois\s+de\s+plus|passer\s+[àa]\s+\d)"),
    "en": _rx(r"\b(?:increase|bump|raise|add\s+a\s+day|one\s+more\s+(?:day|time)|go\s+to\s+\d)"),
}

FOLLOW_UP_PATTERNS: Dict[str, Pattern] = {
    "fr": _rx(
        r"(?:qu'est-ce\s+qui\s+(?:t'a|a)\s+(?:bloqu[ée]|emp[êe]ch[ée])|"
        r"qu'est-ce\s+qui\s+s'est\s+pass[ée]|pourquoi|c'[ée]tait\s+quoi\s+le\s+frein)"
    ),
    "en": _rx(r"(?:what\s+(?:blocked|stopped)\s+you|what\s+got\s+in\s+the\s+way|what\s+happened|why\s+not)"),
}

DAY_NAMES: Dict[str, Dict[str, str]] = {
    "fr": {
        "lundi": "mon",
        "mardi": "tue",
        "mercredi": "wed",
        "jeudi": "thu",
        "vendredi": "fri",
        "samedi": "sat",
        "dimanche": "sun",
    },
    "en": {
        "monday": "mon", "mon": "mon",
        "tuesday": "tue", "tue": "tue", "tues": "tue",
        "wednesday": "wed", "wed": "wed", "weds": "wed",
        "thursday": "thu", "thu": "thu", "thurs": "thu",
        "friday": "fri", "fri": "fri",
        "saturday": "sat", "sat": "sat",
        "sunday": "sun", "sun": "sun",
    },
}

_NUMBER_RE = re.compile(r"(?<![\w.,])(-?\d+(?:[.,]\d+)?)")


def normalize(text: Optional[str]) -> str:
    """Lowercase, trim and unify typographic apostrophes."""
    return (text or "").replace("’", "'").replace("`", "'").strip().lower()


def _table(tables: Dict[str, object], language: str):
    return tables.get(language, tables["fr"])


def is_explicit_stop(message: str, language: str) -> bool:
    text = normalize(message)
    if not text:
        return False
    return bool(_table(STOP_PATTERNS, language).search(text))


def classify_consent(message: str, language: str) -> Consent:
    """Binary yes/no over free text. Both or neither matching is unclear."""
    text = normalize(message)
    if not text:
        return Consent.UNCLEAR
    yes = bool(_table(YES_PATTERNS, language).search(text))
    no = bool(_table(NO_PATTERNS, language).search(text))
    if yes and not no:
        return Consent.YES
    if no and not yes:
        return Consent.NO
    return Consent.UNCLEAR


def says_not_done(message: str, language: str) -> bool:
    text = normalize(message)
    return bool(text) and bool(_table(NOT_DONE_PATTERNS, language).search(text))


def says_done(message: str, language: str) -> bool:
    """Affirmative completion, ignoring words that only appear negated ("pas fait")."""
    text = normalize(message)
    if not text:
        return False
    stripped = _table(NOT_DONE_PATTERNS, language).sub(" ", text)
    return bool(_table(DONE_PATTERNS, language).search(stripped))


def is_follow_up_question(text: str, language: str) -> bool:
    """True when a model reply asks the user something (e.g. what blocked them)."""
    t = normalize(text)
    if not t:
        return False
    return "?" in t or bool(_table(FOLLOW_UP_PATTERNS, language).search(t))


def parse_day_of_week(message: str, language: str) -> Optional[str]:
    """Map the first day name found in `message` to a "mon".."sun" code."""
    names = _table(DAY_NAMES, language)
    for token in re.findall(r"[a-zà-ÿ]+", normalize(message)):
        code = names.get(token)
        if code is not None:
            return code
    return None


def extract_number(message: str) -> Optional[float]:
    match = _NUMBER_RE.search(message or "")
    if not match:
        return None
    return float(match.group(1).replace(",", "."))


def says_partial(message: str, language: str) -> bool:
    text = normalize(message)
    return bool(text) and bool(_table(PARTIAL_PATTERNS, language).search(text))


def wants_target_increase(message: str, language: str) -> bool:
    text = normalize(message)
    return bool(text) and bool(_table(INCREASE_PATTERNS, language).search(text))
