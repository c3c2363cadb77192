"""Statistics helpers for the auto-accept scheduler."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SchedulerStats:
    """Mutable counters tracking auto-accept evaluations."""

    passes: int = 0
    evaluations: int = 0
    confirmed: int = 0
    cancelled: int = 0
    skipped: int = 0
    failures: int = 0
    total_execution_time: float = 0.0

    def record_pass(self, execution_time: float) -> None:
        self.passes += 1
        if execution_time >= 0:
            self.total_execution_time += execution_time

    def record_result(self, result: str) -> None:
        self.evaluations += 1
        if result == "confirmed":
            self.confirmed += 1
        elif result == "cancelled":
            self.cancelled += 1
        elif result == "failed":
            self.failures += 1
        else:
            self.skipped += 1

    @property
    def avg_pass_time(self) -> float:
        if self.passes == 0:
            return 0.0
        return self.total_execution_time / self.passes

    @property
    def failure_rate(self) -> float:
        if self.evaluations == 0:
            return 0.0
        return (self.failures / self.evaluations) * 100

    def format_report(self) -> str:
        lines = [
            "📊 Auto-Accept Scheduler Report",
            f"🔁 Passes: {self.passes}",
            f"🧮 Evaluations: {self.evaluations}",
            f"✅ Confirmed: {self.confirmed}",
            f"🚫 Cancelled: {self.cancelled}",
            f"⏭️ Skipped: {self.skipped}",
            f"❌ Failures: {self.failures} ({self.failure_rate:.2f}%)",
            f"⏱️ Avg Pass Time: {self.avg_pass_time:.3f}s",
        ]
        return "\n".join(lines)
