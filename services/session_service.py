"""Session Service Module

The checkup engine holds no state between turns: every turn returns the full
serialized session and the caller hands it back on the next one. This module
is that caller-side storage:

1. In-memory storage of serialized sessions, one active bilan per user
2. Optional persistence to JSON (restart-safe)
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from config.settings import SESSION_STORAGE_PATH
from models.checkup import CheckupSession, TurnResult

logger = logging.getLogger(__name__)


class InMemorySessionService:
    """
    Stores serialized CheckupSession state per user.

    Features:
    - Save/Load/Clear the active session of a user
    - Apply a TurnResult (store the next state, or drop it once closed)
    - Optional persistence to disk
    """

    def __init__(self, persist: bool = False, storage_dir: Optional[Path] = None):
        self._sessions: Dict[str, dict] = {}
        self._persist = persist
        self._dir = Path(storage_dir) if storage_dir else SESSION_STORAGE_PATH

        if persist:
            self._dir.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    # === Core Session Operations ===

    def save(self, session: CheckupSession) -> dict:
        """Store the serialized session for its user."""
        data = session.to_dict()
        data["updated_at"] = datetime.now().isoformat()
        self._sessions[session.user_id] = data

        if self._persist:
            self._save_to_disk(session.user_id, data)
        return data

    def load(self, user_id: str) -> Optional[CheckupSession]:
        """Get the active session of a user, if any."""
        data = self._sessions.get(user_id)
        if data is None:
            return None
        try:
            return CheckupSession.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"Corrupted session state for {user_id}, dropping it: {e}")
            self.clear(user_id)
            return None

    def clear(self, user_id: str) -> bool:
        """Forget a user's session."""
        if user_id not in self._sessions:
            return False
        self._sessions.pop(user_id)
        if self._persist:
            (self._dir / f"{user_id}.json").unlink(missing_ok=True)
        logger.info(f"Cleared checkup session for {user_id}")
        return True

    def apply(self, result: TurnResult) -> Optional[CheckupSession]:
        """Store the next state of a turn; closed sessions are removed."""
        if result.state_to_persist() is None:
            self.clear(result.session.user_id)
            return None
        self.save(result.session)
        return result.session

    def list_users(self) -> List[str]:
        return list(self._sessions.keys())

    # === Persistence ===

    def _save_to_disk(self, user_id: str, data: dict):
        path = self._dir / f"{user_id}.json"
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    def _load_from_disk(self):
        for path in self._dir.glob("*.json"):
            try:
                with open(path) as f:
                    data = json.load(f)
                self._sessions[data["user_id"]] = data
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Failed to load session {path}: {e}")

        logger.info(f"Loaded {len(self._sessions)} checkup sessions")


# Global session service instance
_session_service = None


def get_session_service() -> InMemorySessionService:
    """Get or create the global session service."""
    global _session_service
    if _session_service is None:
        _session_service = InMemorySessionService(persist=True)
    return _session_service
