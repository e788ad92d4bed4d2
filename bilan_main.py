"""Bilan - Daily Checkup Companion

Interactive runner for the checkup engine:
- Stateless turn engine (InvestigatorAgent) fed with the stored session
- Session persistence between turns (InMemorySessionService)
- Observability (Tracing, Metrics)
- In-memory tracking store seeded with a demo plan
"""
import argparse
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from agents.investigator_agent import InvestigatorAgent
from config.settings import CHECKUP_LANGUAGE, GOOGLE_API_KEY
from core.observability import get_metrics_summary
from models.checkup import ItemKind, TurnResult, ValueKind
from models.tracking import RecordStatus, TrackedRecord
from services.memory_store import InMemoryTrackingStore
from services.session_service import InMemorySessionService, get_session_service

logger = logging.getLogger(__name__)


class BilanSystem:
    """
    Caller-side loop around the checkup engine.

    Loads the stored session before each turn, hands it to the engine,
    and stores (or drops, once closed) whatever comes back.
    """

    def __init__(self, user_id: str, store: InMemoryTrackingStore,
                 session_service: Optional[InMemorySessionService] = None,
                 language: str = CHECKUP_LANGUAGE):
        self.user_id = user_id
        self.store = store
        self.session_service = session_service or get_session_service()
        self.engine = InvestigatorAgent(store, language=language)
        self.last_message_at: Optional[datetime] = None

    def process(self, user_text: str) -> TurnResult:
        """Run one turn and persist the resulting state."""
        now = datetime.now(timezone.utc)
        session = self.session_service.load(self.user_id)
        result = self.engine.run(
            self.user_id,
            user_text,
            session=session,
            now=now,
            last_message_at=self.last_message_at,
        )
        self.session_service.apply(result)
        self.last_message_at = now
        return result

    def get_metrics(self) -> dict:
        """Get observability metrics for this run."""
        return get_metrics_summary()


def seed_demo_plan(store: InMemoryTrackingStore, user_id: str, tz_name: str = "Europe/Paris"):
    """A small plan covering every item kind."""
    now = datetime.now(timezone.utc)
    store.set_timezone(user_id, tz_name)
    store.add_record(user_id, TrackedRecord(
        id="weight", kind=ItemKind.VITAL, title="Poids", value_kind=ValueKind.NUMERIC,
        unit="kg", current_value=72.4, target_value=70.0, plan_position=0,
    ))
    store.add_record(user_id, TrackedRecord(
        id="walk", kind=ItemKind.ACTION, title="Marcher 20 minutes", is_habit=True,
        target_reps=3, current_reps=1, last_performed_at=now - timedelta(days=2), plan_position=1,
    ))
    store.add_record(user_id, TrackedRecord(
        id="screens", kind=ItemKind.ACTION, title="Pas d'écran après 22h", is_habit=True,
        target_reps=5, time_of_day="evening", plan_position=2,
    ))
    store.add_record(user_id, TrackedRecord(
        id="breathing", kind=ItemKind.EXERCISE, title="Cohérence cardiaque", target_reps=10,
        plan_position=3,
    ))
    store.add_record(user_id, TrackedRecord(
        id="stretch", kind=ItemKind.ACTION, title="Étirements du matin", status=RecordStatus.PENDING,
        is_habit=True, target_reps=3, plan_position=4,
    ))


def main():
    parser = argparse.ArgumentParser(description="Run a daily bilan in the terminal.")
    parser.add_argument("--user", default="demo_user")
    parser.add_argument("--language", default=CHECKUP_LANGUAGE, choices=["fr", "en"])
    parser.add_argument("--persist", action="store_true", help="Keep sessions on disk between runs")
    args = parser.parse_args()

    print("=== Bilan - Daily Checkup ===")
    if not GOOGLE_API_KEY:
        print("[info] GOOGLE_API_KEY not set, running with deterministic templates.")

    store = InMemoryTrackingStore()
    seed_demo_plan(store, args.user)
    system = BilanSystem(args.user, store, InMemorySessionService(persist=args.persist), args.language)

    print("Type 'exit' to quit.\n")
    result = system.process("")
    print(f"Bilan: {result.content}")

    while not result.is_closed:
        user_input = input("\nYou: ")
        if user_input.lower() in ["exit", "quit"]:
            break
        result = system.process(user_input)
        print(f"Bilan: {result.content}")

    if result.stats:
        s = result.stats
        print(f"\n[stats] {s.completed} done, {s.missed} missed, {s.logged}/{s.items} logged")
    print(f"[metrics] {system.get_metrics()}")


if __name__ == "__main__":
    main()
