"""Observability Module - Logging, Tracing, and Metrics

This module provides:
1. Process-wide logging configuration
2. Per-turn tracing of the checkup engine
3. Aggregated turn metrics (scenarios, latency, hiccups)
"""
import time
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(name)s | %(levelname)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger("bilan")


@dataclass
class TurnTrace:
    """Represents a single engine turn."""
    user_id: str
    start_time: datetime = field(default_factory=datetime.now)
    duration_ms: Optional[float] = None
    item_id: Optional[str] = None
    scenario: Optional[str] = None
    success: bool = True
    error: Optional[str] = None
    _started: float = field(default_factory=time.perf_counter, repr=False)

    def complete(self, success: bool = True, error: str = None):
        """Mark trace as complete."""
        self.duration_ms = (time.perf_counter() - self._started) * 1000
        self.success = success
        self.error = error


@dataclass
class EngineMetrics:
    """Aggregated metrics for checkup turns."""
    total_turns: int = 0
    failed_turns: int = 0
    hiccups: int = 0
    total_latency_ms: float = 0
    scenarios: Dict[str, int] = field(default_factory=dict)

    @property
    def avg_latency_ms(self) -> float:
        if self.total_turns == 0:
            return 0.0
        return self.total_latency_ms / self.total_turns

    def record(self, trace: TurnTrace):
        """Record a trace into metrics."""
        self.total_turns += 1
        if not trace.success:
            self.failed_turns += 1
        if trace.scenario == "technical_hiccup":
            self.hiccups += 1
        if trace.duration_ms:
            self.total_latency_ms += trace.duration_ms
        if trace.scenario:
            self.scenarios[trace.scenario] = self.scenarios.get(trace.scenario, 0) + 1

    def summary(self) -> Dict[str, Any]:
        return {
            "total_turns": self.total_turns,
            "failed_turns": self.failed_turns,
            "hiccups": self.hiccups,
            "avg_latency_ms": f"{self.avg_latency_ms:.0f}ms",
            "scenarios": dict(self.scenarios),
        }


# Global metrics instance
metrics = EngineMetrics()


class Tracer:
    """Context manager tracing one checkup turn."""

    def __init__(self, user_id: str):
        self.trace = TurnTrace(user_id=user_id)

    def __enter__(self):
        logger.info(f"▶ checkup turn started for {self.trace.user_id}")
        return self.trace

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.trace.complete(success=False, error=str(exc_val))
            logger.error(f"✖ checkup turn failed for {self.trace.user_id}: {exc_val}")
        else:
            self.trace.complete(success=True)
            logger.info(
                f"✔ checkup turn for {self.trace.user_id} -> {self.trace.scenario} "
                f"in {self.trace.duration_ms:.0f}ms"
            )

        metrics.record(self.trace)
        return False  # Don't suppress exceptions


def get_metrics_summary() -> Dict[str, Any]:
    """Get current metrics summary."""
    return metrics.summary()


def reset_metrics():
    """Reset the global metrics (used by tests)."""
    global metrics
    metrics = EngineMetrics()
