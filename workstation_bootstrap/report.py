from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


class OutcomeStatus(str, enum.Enum):
    ALREADY_SATISFIED = "already-satisfied"
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    key: str
    kind: str
    status: OutcomeStatus
    note: str = ""
    error_type: Optional[str] = None
    label: str = ""

    @classmethod
    def already_satisfied(cls, key: str, kind: str, note: str = "", *, label: str = "") -> "Outcome":
        return cls(key=key, kind=kind, status=OutcomeStatus.ALREADY_SATISFIED, note=note, label=label)

    @classmethod
    def applied(cls, key: str, kind: str, note: str = "", *, label: str = "") -> "Outcome":
        return cls(key=key, kind=kind, status=OutcomeStatus.APPLIED, note=note, label=label)

    @classmethod
    def skipped(cls, key: str, kind: str, reason: str, *, label: str = "") -> "Outcome":
        return cls(key=key, kind=kind, status=OutcomeStatus.SKIPPED, note=reason, label=label)

    @classmethod
    def failed(cls, key: str, kind: str, error: BaseException, *, label: str = "") -> "Outcome":
        return cls(
            key=key,
            kind=kind,
            status=OutcomeStatus.FAILED,
            note=str(error) or type(error).__name__,
            error_type=type(error).__name__,
            label=label,
        )

    def render(self) -> str:
        name = self.label if self.label and self.label != self.key else ""
        head = f"[{self.status.value:>17}] {self.kind}:{self.key}"
        if name:
            head += f" ({name})"
        if self.note:
            head += f" - {self.note}"
        return head

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "key": self.key,
            "kind": self.kind,
            "status": self.status.value,
            "note": self.note,
        }
        if self.label:
            d["label"] = self.label
        if self.error_type:
            d["error_type"] = self.error_type
        return d


@dataclass(frozen=True)
class PlanReport:
    """Ordered outcomes of one reconciliation run. Immutable once built."""

    outcomes: Tuple[Outcome, ...] = ()
    dry_run: bool = False

    def counts(self) -> Dict[str, int]:
        c = {s.value: 0 for s in OutcomeStatus}
        for o in self.outcomes:
            c[o.status.value] += 1
        return c

    @property
    def failed(self) -> List[Outcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.FAILED]

    @property
    def succeeded(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        c = self.counts()
        parts = [f"{n} {s}" for s, n in c.items()]
        verdict = "OK" if self.succeeded else "FAILED"
        prefix = "Dry run: " if self.dry_run else ""
        return f"{prefix}{verdict} ({', '.join(parts)}; {len(self.outcomes)} total)"

    def render(self) -> str:
        lines = [o.render() for o in self.outcomes]
        lines.append(self.summary())
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "dry_run": self.dry_run,
            "counts": self.counts(),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


@dataclass
class PlanReportBuilder:
    dry_run: bool = False
    _outcomes: List[Outcome] = field(default_factory=list)
    _finished: bool = False

    def record(self, outcome: Outcome) -> Outcome:
        if self._finished:
            raise RuntimeError("Plan report already finished")
        self._outcomes.append(outcome)
        return outcome

    def finish(self) -> PlanReport:
        self._finished = True
        return PlanReport(outcomes=tuple(self._outcomes), dry_run=self.dry_run)
