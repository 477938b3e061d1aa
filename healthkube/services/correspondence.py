"""Correspondence builder.

Joins the workloads of every scanned target with the monitors of the
Healthchecks project through the derived monitor name. Runs in O(W + M).

Rules:
* The same workload fetched twice (overlapping targets) is kept once.
* Two *different* workloads deriving the same name abort the run.
* When several monitors share a name, the one whose id the workload already
  carries wins; the others are reported as orphans.
* A monitor without workload is only an orphan if it carries the managed
  tag and its name falls inside the scope scanned in this run, so partial
  runs never flag monitors of unscanned namespaces or manual checks.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from healthkube.errors import IdentityCollisionError
from healthkube.models.descriptors import (
    CorrespondencePair,
    MonitorDescriptor,
    TargetSpec,
    WorkloadDescriptor,
)
from healthkube.services.monitor_naming import MonitorKey, derive_monitor_name, parse_monitor_name


@dataclass
class ScanScope:
    """The (context, namespace) space covered by the targets of one run."""
    namespaces: set[tuple[str, str]] = field(default_factory=set)
    all_namespace_contexts: set[str] = field(default_factory=set)

    @classmethod
    def from_targets(cls, targets: Iterable[TargetSpec]) -> "ScanScope":
        scope = cls()
        for target in targets:
            if target.all_namespaces:
                scope.all_namespace_contexts.add(target.context)
            else:
                scope.namespaces.update((target.context, ns) for ns in target.namespaces)
        return scope

    def covers(self, key: MonitorKey) -> bool:
        if key.context is not None:
            return key.context in self.all_namespace_contexts or (key.context, key.namespace) in self.namespaces
        # Keys without context match any scanned context
        if self.all_namespace_contexts:
            return True
        return any(ns == key.namespace for _, ns in self.namespaces)


@dataclass
class Correspondence:
    pairs: list[CorrespondencePair]
    orphans: list[MonitorDescriptor]


def dedupe_workloads(workloads: Iterable[WorkloadDescriptor]) -> list[WorkloadDescriptor]:
    seen: set[tuple[str, str, str]] = set()
    unique: list[WorkloadDescriptor] = []
    for workload in workloads:
        if workload.identity in seen:
            continue
        seen.add(workload.identity)
        unique.append(workload)
    return unique


def _pick_monitor(candidates: list[MonitorDescriptor], workload: WorkloadDescriptor) -> MonitorDescriptor:
    if workload.current_env_value:
        for monitor in candidates:
            if monitor.id == workload.current_env_value:
                return monitor
    return candidates[0]


def build_correspondence(
    workloads: Sequence[WorkloadDescriptor],
    monitors: Sequence[MonitorDescriptor],
    *,
    scope: Optional[ScanScope] = None,
    key_version: Optional[int] = None,
    managed_tag: Optional[str] = None,
) -> Correspondence:
    by_name: dict[str, list[MonitorDescriptor]] = {}
    for monitor in monitors:
        by_name.setdefault(monitor.name, []).append(monitor)

    owners: dict[str, WorkloadDescriptor] = {}
    pairs: list[CorrespondencePair] = []
    claimed: set[str] = set()
    for workload in dedupe_workloads(workloads):
        key = derive_monitor_name(workload, key_version)
        owner = owners.get(key)
        if owner is not None:
            raise IdentityCollisionError(key, owner, workload)
        owners[key] = workload

        candidates = by_name.get(key)
        existing = _pick_monitor(candidates, workload) if candidates else None
        if existing is not None:
            claimed.add(existing.id)
        pairs.append(CorrespondencePair(key=key, workload=workload, existing_monitor=existing))

    orphans: list[MonitorDescriptor] = []
    for monitor in monitors:
        if monitor.id in claimed:
            continue
        if managed_tag and managed_tag not in monitor.tags:
            continue
        parsed = parse_monitor_name(monitor.name, key_version)
        if parsed is None:
            continue
        if scope is not None and not scope.covers(parsed):
            continue
        orphans.append(monitor)

    return Correspondence(pairs=pairs, orphans=orphans)


__all__ = [
    "Correspondence",
    "ScanScope",
    "build_correspondence",
    "dedupe_workloads",
]
