"""
Timing for DualChat sessions.

Two kinds of measurements are kept while DUALCHAT_TIMING=1:
- "llm": one record per Completion Service attempt, tagged with model,
  attempt number and whether it succeeded
- "session": one record per start_session / retry_failed_step run

The summary groups attempts per model and totals session time.
"""

from __future__ import annotations

import os
import statistics
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

_TRUTHY = ("1", "true", "yes", "on")


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "0").lower() in _TRUTHY


@dataclass
class TimingRecord:
    operation: str  # step identifier or session id
    category: str
    duration_ms: float
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return bool(self.metadata.get("ok", True))


@dataclass
class ModelStats:
    """Attempt statistics for one model."""
    model: str
    attempts: int = 0
    failures: int = 0
    durations: list[float] = field(default_factory=list)

    @property
    def median_ms(self) -> float:
        return statistics.median(self.durations) if self.durations else 0.0

    @property
    def failure_rate(self) -> float:
        return self.failures / self.attempts if self.attempts else 0.0


class TimingCollector:
    """
    Process-wide collector; all sessions share one event loop, so records are
    appended without locking.
    """

    _instance: Optional["TimingCollector"] = None

    def __init__(self):
        self.records: list[TimingRecord] = []
        self.enabled = _env_flag("DUALCHAT_TIMING")

    @classmethod
    def get_instance(cls) -> "TimingCollector":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False

    def record(self, operation: str, category: str, duration_ms: float, **metadata: Any) -> None:
        """Store one measurement; a no-op while disabled."""
        if not self.enabled:
            return
        self.records.append(TimingRecord(operation, category, duration_ms, metadata=metadata))
        if _env_flag("DUALCHAT_TIMING_VERBOSE"):
            status = "" if metadata.get("ok", True) else " (failed)"
            print(f"  ⏱ [{category}] {operation}: {duration_ms:.1f}ms{status}")

    def get_records(self, category: Optional[str] = None, operation: Optional[str] = None) -> list[TimingRecord]:
        return [
            r for r in self.records
            if (category is None or r.category == category)
            and (operation is None or r.operation == operation)
        ]

    def model_stats(self) -> dict[str, ModelStats]:
        """Group completion attempts by model."""
        stats: dict[str, ModelStats] = {}
        for r in self.get_records(category="llm"):
            model = str(r.metadata.get("model", "unknown"))
            entry = stats.setdefault(model, ModelStats(model))
            entry.attempts += 1
            entry.durations.append(r.duration_ms)
            if not r.ok:
                entry.failures += 1
        return stats

    def get_summary(self) -> dict[str, Any]:
        sessions = [r.duration_ms for r in self.get_records(category="session")]
        return {
            "total_records": len(self.records),
            "sessions": len(sessions),
            "session_total_ms": round(sum(sessions), 2),
            "models": {
                name: {
                    "attempts": s.attempts,
                    "failures": s.failures,
                    "failure_rate": round(s.failure_rate, 3),
                    "median_ms": round(s.median_ms, 2),
                }
                for name, s in self.model_stats().items()
            },
        }

    def print_summary(self) -> None:
        summary = self.get_summary()
        if not summary["total_records"]:
            print("\n⏱ No timing records collected.")
            return

        print("\n" + "=" * 60)
        print("  ⏱  TIMING SUMMARY")
        print("=" * 60)
        print(f"  Sessions: {summary['sessions']} ({summary['session_total_ms'] / 1000:.1f}s total)")
        for name, s in summary["models"].items():
            print(
                f"    {name}: {s['attempts']} call(s), {s['failures']} failed ({s['failure_rate']:.0%}), "
                f"median {s['median_ms']:.0f}ms"
            )
        print("=" * 60 + "\n")

    def clear(self) -> None:
        self.records.clear()


timing = TimingCollector.get_instance


__all__ = [
    "ModelStats",
    "TimingCollector",
    "TimingRecord",
    "timing",
]
