"""Batch outcome reporting."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any


@dataclass
class TransactionFailure:
    """A transaction that could not be processed, and where it failed."""

    transaction_id: str
    step: str
    error: str


@dataclass
class BatchReport:
    """Counts and failures of one import run."""

    processed: int = 0
    new_lines: int = 0
    reimported_lines: int = 0
    deleted_lines: int = 0
    resolved: Counter = field(default_factory=Counter)  # by match step
    unresolved: int = 0
    rules_applied: Counter = field(default_factory=Counter)  # by rule id
    counterpart_updates: int = 0
    fallback_applied: int = 0
    failures: list[TransactionFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def fail(self, transaction_id: str, step: str, error: Exception) -> None:
        self.failures.append(TransactionFailure(transaction_id, step, f"{type(error).__name__}: {error}"))

    def summary(self) -> dict[str, Any]:
        """Flat summary for logging and JSON output."""
        return {
            "processed": self.processed,
            "new_lines": self.new_lines,
            "reimported_lines": self.reimported_lines,
            "deleted_lines": self.deleted_lines,
            "resolved": dict(self.resolved),
            "unresolved": self.unresolved,
            "rules_applied": dict(self.rules_applied),
            "counterpart_updates": self.counterpart_updates,
            "fallback_applied": self.fallback_applied,
            "failures": len(self.failures),
        }
