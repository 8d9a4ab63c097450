"""Session counters for tool calls (count, outcome, duration)."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Protocol


class MetricsSink(Protocol):
    def record_tool_call(
        self,
        name: str,
        duration_ms: float,
        status: str,
        outcome: str | None,
        error_type: str | None,
    ) -> None: ...


@dataclass
class ToolStats:
    count: int = 0
    success: int = 0
    fail: int = 0
    duration_ms: float = 0.0
    decisions: Counter[str] = field(default_factory=Counter)


@dataclass
class SessionMetrics:
    """In-memory sink; one per session."""

    total_calls: int = 0
    total_success: int = 0
    total_fail: int = 0
    total_duration_ms: float = 0.0
    by_name: dict[str, ToolStats] = field(default_factory=dict)

    def record_tool_call(
        self,
        name: str,
        duration_ms: float,
        status: str,
        outcome: str | None,
        error_type: str | None,
    ) -> None:
        stats = self.by_name.setdefault(name, ToolStats())
        stats.count += 1
        stats.duration_ms += duration_ms
        self.total_calls += 1
        self.total_duration_ms += duration_ms
        if status == "success":
            stats.success += 1
            self.total_success += 1
        else:
            stats.fail += 1
            self.total_fail += 1
        stats.decisions[outcome or "auto"] += 1

    def summary(self) -> dict[str, object]:
        return {
            "total_calls": self.total_calls,
            "total_success": self.total_success,
            "total_fail": self.total_fail,
            "total_duration_ms": round(self.total_duration_ms, 1),
            "by_name": {
                name: {
                    "count": s.count,
                    "success": s.success,
                    "fail": s.fail,
                    "duration_ms": round(s.duration_ms, 1),
                    "decisions": dict(s.decisions),
                }
                for name, s in self.by_name.items()
            },
        }
