"""Per-pair outcomes and the aggregate report of one sync run."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from healthkube.models.enums import ActionKind, OutcomeStatus


@dataclass
class PairOutcome:
    key: str
    action: ActionKind
    status: OutcomeStatus
    workload: Optional[str] = None
    monitor_id: Optional[str] = None
    changes: tuple[str, ...] = ()
    patched: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status.is_failure


@dataclass
class SyncReport:
    dry_run: bool = False
    outcomes: list[PairOutcome] = field(default_factory=list)
    orphans: list[PairOutcome] = field(default_factory=list)
    integration_ids: tuple[str, ...] = ()

    @property
    def failures(self) -> list[PairOutcome]:
        return [o for o in self.outcomes + self.orphans if o.failed]

    @property
    def patched_count(self) -> int:
        return sum(1 for o in self.outcomes if o.patched)

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0

    def count(self, action: ActionKind) -> int:
        return sum(1 for o in self.outcomes if o.action == action)

    def summary(self) -> dict[str, int | bool]:
        return {
            "dry_run": self.dry_run,
            "pairs": len(self.outcomes),
            "created": self.count(ActionKind.CREATE),
            "updated": self.count(ActionKind.UPDATE),
            "paused": self.count(ActionKind.PAUSE),
            "unchanged": self.count(ActionKind.NOOP),
            "skipped": self.count(ActionKind.SKIP),
            "patched": self.patched_count,
            "orphans": len(self.orphans),
            "deleted": sum(1 for o in self.orphans if o.status == OutcomeStatus.DELETED),
            "failed": len(self.failures),
        }


__all__ = ["PairOutcome", "SyncReport"]
