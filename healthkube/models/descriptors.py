"""Domain descriptors shared by the sources, the correspondence builder and the reconciler.

All of them are built fresh for every invocation; nothing is cached across runs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from healthkube.models.enums import ActionKind


@dataclass(frozen=True)
class TargetSpec:
    context: str
    namespaces: frozenset[str] = frozenset()

    @property
    def all_namespaces(self) -> bool:
        return not self.namespaces

    def scopes(self) -> list[tuple[str, Optional[str]]]:
        """Concrete (context, namespace) pairs; ``None`` namespace means all namespaces."""
        if self.all_namespaces:
            return [(self.context, None)]
        return [(self.context, ns) for ns in sorted(self.namespaces)]

    def __str__(self) -> str:
        if self.all_namespaces:
            return self.context
        return f"{self.context}:{','.join(sorted(self.namespaces))}"


@dataclass(frozen=True)
class WorkloadDescriptor:
    context: str
    namespace: str
    name: str
    schedule: str
    suspended: bool = False
    current_env_value: Optional[str] = None
    time_zone: Optional[str] = None
    containers: tuple[str, ...] = ()

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.context, self.namespace, self.name)

    def __str__(self) -> str:
        return f"{self.context}:{self.namespace}/{self.name}"


@dataclass(frozen=True)
class MonitorDescriptor:
    id: str
    name: str
    schedule: Optional[str] = None
    timezone: Optional[str] = None
    grace: int = 0
    integration_ids: frozenset[str] = frozenset()
    tags: frozenset[str] = frozenset()
    status: str = "new"
    desc: str = ""

    @property
    def paused(self) -> bool:
        return self.status == "paused"


@dataclass(frozen=True)
class IntegrationDescriptor:
    id: str
    name: str
    kind: str = ""


@dataclass(frozen=True)
class MonitorConfig:
    """Desired state of one monitor. Always sent whole (replace semantics)."""
    name: str
    schedule: str
    timezone: str
    grace: int
    integration_ids: frozenset[str] = frozenset()
    tags: frozenset[str] = frozenset()
    desc: str = ""

    def diff(self, monitor: MonitorDescriptor) -> tuple[str, ...]:
        """Names of the compared fields where ``monitor`` deviates from this config."""
        changed = []
        if monitor.schedule != self.schedule:
            changed.append("schedule")
        if monitor.timezone != self.timezone:
            changed.append("timezone")
        if monitor.grace != self.grace:
            changed.append("grace")
        if monitor.integration_ids != self.integration_ids:
            changed.append("integrations")
        if monitor.tags != self.tags:
            changed.append("tags")
        return tuple(changed)


@dataclass(frozen=True)
class CorrespondencePair:
    key: str
    workload: WorkloadDescriptor
    existing_monitor: Optional[MonitorDescriptor] = None


@dataclass(frozen=True)
class ReconcileAction:
    kind: ActionKind
    key: str
    monitor_id: Optional[str] = None
    config: Optional[MonitorConfig] = None
    changes: tuple[str, ...] = ()
    pause: bool = False
    existing: Optional[MonitorDescriptor] = field(default=None, compare=False)

    @classmethod
    def create(cls, key: str, config: MonitorConfig, *, pause: bool = False) -> "ReconcileAction":
        return cls(ActionKind.CREATE, key, config=config, pause=pause)

    @classmethod
    def update(cls, existing: MonitorDescriptor, config: MonitorConfig, changes: tuple[str, ...], *, pause: bool = False) -> "ReconcileAction":
        return cls(ActionKind.UPDATE, existing.name, monitor_id=existing.id, config=config, changes=changes, pause=pause, existing=existing)

    @classmethod
    def pause_only(cls, existing: MonitorDescriptor) -> "ReconcileAction":
        return cls(ActionKind.PAUSE, existing.name, monitor_id=existing.id, pause=True, existing=existing)

    @classmethod
    def noop(cls, existing: MonitorDescriptor) -> "ReconcileAction":
        return cls(ActionKind.NOOP, existing.name, monitor_id=existing.id, existing=existing)

    @classmethod
    def skip(cls, key: str, existing: Optional[MonitorDescriptor]) -> "ReconcileAction":
        return cls(ActionKind.SKIP, key, monitor_id=existing.id if existing else None, existing=existing)

    @classmethod
    def orphan(cls, monitor: MonitorDescriptor) -> "ReconcileAction":
        return cls(ActionKind.ORPHAN, monitor.name, monitor_id=monitor.id, existing=monitor)

    @property
    def mutates(self) -> bool:
        return self.kind in {ActionKind.CREATE, ActionKind.UPDATE, ActionKind.PAUSE}


__all__ = [
    "TargetSpec",
    "WorkloadDescriptor",
    "MonitorDescriptor",
    "IntegrationDescriptor",
    "MonitorConfig",
    "CorrespondencePair",
    "ReconcileAction",
]
