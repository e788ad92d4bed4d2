"""Central Configuration for the Bilan checkup engine."""
import os
from pathlib import Path
from dataclasses import dataclass
from dotenv import load_dotenv

# Base Directory (Root of the project)
BASE_DIR = Path(__file__).resolve().parent.parent

# Load Environment Variables
load_dotenv(BASE_DIR / ".env")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# LLM Settings
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL_NAME = os.getenv("GEMINI_MODEL_NAME", "gemini-2.0-flash")
GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.4"))

# Language used for copy and intent tables ("fr" or "en")
CHECKUP_LANGUAGE = os.getenv("CHECKUP_LANGUAGE", "fr")
DEFAULT_TIMEZONE = os.getenv("CHECKUP_DEFAULT_TIMEZONE", "Europe/Paris")

# Paths
SESSION_STORAGE_PATH = BASE_DIR / ".sessions"

# Checkup policy (tuned empirically, keep overridable)
FRESHNESS_WINDOW_HOURS = _env_int("CHECKUP_FRESHNESS_WINDOW_HOURS", 18)
IDEMPOTENCY_WINDOW_HOURS = _env_int("CHECKUP_IDEMPOTENCY_WINDOW_HOURS", 18)
DAY_SCOPE_CUTOFF_HOUR = _env_int("CHECKUP_DAY_SCOPE_CUTOFF_HOUR", 16)
COLD_RELAUNCH_HOURS = _env_int("CHECKUP_COLD_RELAUNCH_HOURS", 4)
WIN_STREAK_THRESHOLD = _env_int("CHECKUP_WIN_STREAK_THRESHOLD", 3)
MISSED_STREAK_OFFER_THRESHOLD = _env_int("CHECKUP_MISSED_STREAK_OFFER_THRESHOLD", 5)
STREAK_HISTORY_LIMIT = _env_int("CHECKUP_STREAK_HISTORY_LIMIT", 30)
MAX_WEEKLY_FREQUENCY = _env_int("CHECKUP_MAX_WEEKLY_FREQUENCY", 7)
MAX_CONSENT_REPROMPTS = _env_int("CHECKUP_MAX_CONSENT_REPROMPTS", 1)
MAX_DIGRESSIONS_PER_ITEM = _env_int("CHECKUP_MAX_DIGRESSIONS_PER_ITEM", 4)
NOTE_MAX_CHARS = 220


@dataclass(frozen=True)
class CheckupPolicy:
    """Policy constants injected into the engine.

    Defaults come from the environment; tests build their own instances.
    """
    freshness_window_hours: int = FRESHNESS_WINDOW_HOURS
    idempotency_window_hours: int = IDEMPOTENCY_WINDOW_HOURS
    day_scope_cutoff_hour: int = DAY_SCOPE_CUTOFF_HOUR
    cold_relaunch_hours: int = COLD_RELAUNCH_HOURS
    win_streak_threshold: int = WIN_STREAK_THRESHOLD
    missed_streak_offer_threshold: int = MISSED_STREAK_OFFER_THRESHOLD
    streak_history_limit: int = STREAK_HISTORY_LIMIT
    max_weekly_frequency: int = MAX_WEEKLY_FREQUENCY
    max_consent_reprompts: int = MAX_CONSENT_REPROMPTS
    max_digressions: int = MAX_DIGRESSIONS_PER_ITEM
    note_max_chars: int = NOTE_MAX_CHARS
