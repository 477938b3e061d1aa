"""Sync engine orchestrator.

Single public coroutine ``run_sync(targets, workloads, monitors, options)`` that:
1. Enumerates CronJobs of every (context, namespace) scope with bounded
   parallelism, and the monitors (plus integrations when needed) in parallel.
2. Builds the correspondence between both sides (fatal on key collisions).
3. Plans and applies one action per pair with bounded parallelism; inside a
   pair the monitor is confirmed before its id is patched into the workload.
4. Reports orphan monitors and deletes them only when deletion was both
   requested and confirmed.
5. Returns a ``SyncReport`` with one outcome per pair and orphan.

Per-pair failures never stop other pairs; enumeration failures abort the run.
"""
from __future__ import annotations

import asyncio
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Awaitable, Iterable, List, Optional, Sequence, TypeVar

from healthkube.config import CONCURRENCY_SETTINGS, GRACE_POLICY, HC_DEFAULT_TIMEZONE, NAMING_SETTINGS
from healthkube.errors import (
    ConfigurationError,
    PatchError,
    ReconcileError,
    RemoteFetchError,
    RemoteServiceError,
)
from healthkube.integrations.base import MonitorSource, WorkloadSource
from healthkube.integrations.kubernetes import service_name
from healthkube.models.descriptors import (
    CorrespondencePair,
    IntegrationDescriptor,
    MonitorDescriptor,
    ReconcileAction,
    TargetSpec,
    WorkloadDescriptor,
)
from healthkube.models.enums import ActionKind, OutcomeStatus, SuspendPolicy
from healthkube.models.report import PairOutcome, SyncReport
from healthkube.services.correspondence import ScanScope, build_correspondence
from healthkube.services.env_patcher import EnvPatcher
from healthkube.services.monitor_naming import extract_common_tags, tags_for
from healthkube.services.reconciler import MONITOR_SERVICE, ReconcilePolicy, Reconciler
from healthkube.services.remote_call import RemoteCaller
from healthkube.services.target_resolver import expand_scopes
from healthkube.utils import get_logger, log_performance, log_sync_event

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SyncOptions:
    env_key: Optional[str] = None
    all_integrations: bool = False
    integrations: tuple[str, ...] = ()
    suspend_policy: SuspendPolicy = SuspendPolicy.SKIP
    timezone: str = HC_DEFAULT_TIMEZONE
    grace_margin_seconds: int = int(GRACE_POLICY["safety_margin_seconds"])
    key_version: int = int(NAMING_SETTINGS["key_version"])
    managed_tag: str = str(NAMING_SETTINGS["managed_tag"])
    tag_rank: int = int(NAMING_SETTINGS["tag_rank"])
    dry_run: bool = False
    delete_orphans: bool = False
    confirm_delete: bool = False
    max_parallel_fetches: int = int(CONCURRENCY_SETTINGS["max_parallel_fetches"])
    max_parallel_pairs: int = int(CONCURRENCY_SETTINGS["max_parallel_pairs"])

    def validate(self) -> None:
        if self.all_integrations and self.integrations:
            raise ConfigurationError("--all-integrations and --integration are mutually exclusive")
        if self.max_parallel_fetches < 1 or self.max_parallel_pairs < 1:
            raise ConfigurationError("parallelism limits must be at least 1")
        if self.grace_margin_seconds < 0:
            raise ConfigurationError("grace margin must not be negative")

    @property
    def deletion_confirmed(self) -> bool:
        return self.delete_orphans and self.confirm_delete


async def _bounded(limit: int, coros: Iterable[Awaitable[T]]) -> List[T]:
    """Run coroutines with at most ``limit`` in flight; results keep input order."""
    semaphore = asyncio.Semaphore(limit)

    async def _run(coro: Awaitable[T]) -> T:
        async with semaphore:
            return await coro

    return list(await asyncio.gather(*(_run(c) for c in coros)))


async def fetch_workloads(
    targets: Sequence[TargetSpec],
    source: WorkloadSource,
    caller: RemoteCaller,
    *,
    env_key: Optional[str] = None,
    max_parallel: int = 4,
) -> List[WorkloadDescriptor]:
    """Enumerate every scope; each fetch returns its own list, merged after gather."""

    async def _fetch(context: str, namespace: Optional[str]) -> List[WorkloadDescriptor]:
        try:
            jobs = await caller.call(
                service_name(context),
                "list cronjobs",
                lambda: source.list_scheduled_jobs(context, namespace, env_key),
            )
        except RemoteServiceError as e:
            raise RemoteFetchError(f"Unable to list cronjobs in {context}:{namespace or '*'}: {e}") from e
        logger.info("Scanned target", context=context, namespace=namespace or "*", cronjobs=len(jobs))
        return jobs

    batches = await _bounded(max_parallel, (_fetch(ctx, ns) for ctx, ns in expand_scopes(targets)))
    return [job for batch in batches for job in batch]


async def fetch_monitors(source: MonitorSource, caller: RemoteCaller) -> List[MonitorDescriptor]:
    try:
        return await caller.call(MONITOR_SERVICE, "list monitors", source.list_monitors)
    except RemoteServiceError as e:
        raise RemoteFetchError(f"Unable to list monitors: {e}") from e


async def resolve_integrations(source: MonitorSource, caller: RemoteCaller, options: SyncOptions) -> frozenset[str]:
    """Integration ids to assign: all of them, the requested ones, or none."""
    if not options.all_integrations and not options.integrations:
        return frozenset()
    try:
        available: List[IntegrationDescriptor] = await caller.call(
            MONITOR_SERVICE, "list integrations", source.list_integrations
        )
    except RemoteServiceError as e:
        raise RemoteFetchError(f"Unable to list integrations: {e}") from e

    if options.all_integrations:
        return frozenset(i.id for i in available)

    by_id = {i.id: i for i in available}
    by_name: dict[str, List[IntegrationDescriptor]] = defaultdict(list)
    for integration in available:
        by_name[integration.name].append(integration)

    resolved = set()
    for requested in options.integrations:
        if requested in by_id:
            resolved.add(requested)
        elif len(by_name.get(requested, [])) == 1:
            resolved.add(by_name[requested][0].id)
        elif requested in by_name:
            raise ConfigurationError(f"Integration name {requested!r} is ambiguous; use its id")
        else:
            raise ConfigurationError(f"Unknown integration {requested!r}")
    return frozenset(resolved)


def common_tags_by_namespace(pairs: Sequence[CorrespondencePair], rank: int) -> dict[tuple[str, str], frozenset[str]]:
    names: dict[tuple[str, str], List[str]] = defaultdict(list)
    for pair in pairs:
        names[(pair.workload.context, pair.workload.namespace)].append(pair.workload.name)
    return {scope: extract_common_tags(job_names, rank) for scope, job_names in names.items()}


async def _process_pair(
    pair: CorrespondencePair,
    tags: frozenset[str],
    reconciler: Reconciler,
    patcher: Optional[EnvPatcher],
    dry_run: bool,
) -> PairOutcome:
    workload = pair.workload
    outcome = PairOutcome(key=pair.key, action=ActionKind.NOOP, status=OutcomeStatus.OK, workload=str(workload))
    try:
        action = reconciler.plan(pair, tags)
        outcome.action = action.kind
        outcome.changes = action.changes
        outcome.monitor_id = action.monitor_id

        if dry_run:
            outcome.status = OutcomeStatus.PLANNED
            if patcher is not None and action.kind != ActionKind.SKIP:
                # A monitor that does not exist yet always needs its id written back
                outcome.patched = action.monitor_id is None or patcher.needs_patch(workload, action.monitor_id)
            logger.info("Planned", key=pair.key, action=action.kind.value, changes=",".join(action.changes) or None)
            return outcome

        monitor = await reconciler.apply(action)
        if monitor is None:
            logger.info("Left unchanged", key=pair.key, action=action.kind.value)
            return outcome
        outcome.monitor_id = monitor.id

        if patcher is not None:
            outcome.patched = await patcher.apply(workload, monitor)
        logger.info(
            "Pair reconciled",
            key=pair.key,
            action=action.kind.value,
            monitor_id=monitor.id,
            patched=outcome.patched,
        )
        return outcome
    except ReconcileError as e:
        outcome.status = OutcomeStatus.RECONCILE_FAILED
        outcome.error = str(e)
        logger.error("Reconciliation failed", key=pair.key, workload=str(workload), error=str(e))
    except PatchError as e:
        outcome.status = OutcomeStatus.PATCH_FAILED
        outcome.error = str(e)
        logger.error("Env patch failed; next run will retry", key=pair.key, workload=str(workload), error=str(e))
    return outcome


async def _process_orphan(action: ReconcileAction, reconciler: Reconciler, options: SyncOptions) -> PairOutcome:
    outcome = PairOutcome(
        key=action.key,
        action=action.kind,
        status=OutcomeStatus.REPORTED,
        monitor_id=action.monitor_id,
    )
    if not options.deletion_confirmed:
        logger.warning("Orphan monitor found", key=action.key, monitor_id=action.monitor_id)
        return outcome
    if options.dry_run:
        outcome.status = OutcomeStatus.PLANNED
        logger.info("Planned orphan deletion", key=action.key, monitor_id=action.monitor_id)
        return outcome
    try:
        await reconciler.delete_orphan(action)
        outcome.status = OutcomeStatus.DELETED
    except ReconcileError as e:
        outcome.status = OutcomeStatus.RECONCILE_FAILED
        outcome.error = str(e)
        logger.error("Orphan deletion failed", key=action.key, monitor_id=action.monitor_id, error=str(e))
    return outcome


async def run_sync(
    targets: Sequence[TargetSpec],
    workloads: WorkloadSource,
    monitors: MonitorSource,
    options: Optional[SyncOptions] = None,
    *,
    caller: Optional[RemoteCaller] = None,
) -> SyncReport:
    """Run one reconciliation pass over ``targets``.

    Raises ConfigurationError, IdentityCollisionError or RemoteFetchError
    for failures that make the whole pass meaningless.
    """
    options = options or SyncOptions()
    options.validate()
    caller = caller or RemoteCaller()
    run_id = uuid.uuid4().hex[:12]
    start_time = time.time()

    if options.delete_orphans and not options.confirm_delete:
        logger.warning("Orphan deletion requested without confirmation; orphans will only be reported")

    log_sync_event("sync_started", {
        "targets": ",".join(str(t) for t in targets),
        "dry_run": options.dry_run,
        "suspend_policy": options.suspend_policy.value,
    }, run_id=run_id)

    jobs, existing, integration_ids = await asyncio.gather(
        fetch_workloads(
            targets,
            workloads,
            caller,
            env_key=options.env_key,
            max_parallel=options.max_parallel_fetches,
        ),
        fetch_monitors(monitors, caller),
        resolve_integrations(monitors, caller, options),
    )
    logger.info(
        "Enumeration complete",
        cronjobs=len(jobs),
        monitors=len(existing),
        integrations=",".join(sorted(integration_ids)) or None,
    )

    correspondence = build_correspondence(
        jobs,
        existing,
        scope=ScanScope.from_targets(targets),
        key_version=options.key_version,
        managed_tag=options.managed_tag,
    )

    reconciler = Reconciler(
        monitors,
        ReconcilePolicy(
            default_timezone=options.timezone,
            integration_ids=integration_ids,
            suspend_policy=options.suspend_policy,
            grace_margin_seconds=options.grace_margin_seconds,
        ),
        caller,
    )
    patcher = EnvPatcher(workloads, options.env_key, caller) if options.env_key else None
    common_tags = common_tags_by_namespace(correspondence.pairs, options.tag_rank)

    def _tags(pair: CorrespondencePair) -> frozenset[str]:
        scope = (pair.workload.context, pair.workload.namespace)
        return tags_for(pair.workload.name, common_tags.get(scope, frozenset()), options.managed_tag)

    report = SyncReport(dry_run=options.dry_run, integration_ids=tuple(sorted(integration_ids)))
    report.outcomes = await _bounded(
        options.max_parallel_pairs,
        (_process_pair(pair, _tags(pair), reconciler, patcher, options.dry_run) for pair in correspondence.pairs),
    )
    report.orphans = await _bounded(
        options.max_parallel_pairs,
        (_process_orphan(ReconcileAction.orphan(monitor), reconciler, options) for monitor in correspondence.orphans),
    )

    elapsed_ms = (time.time() - start_time) * 1000
    log_performance("sync_run", round(elapsed_ms, 1), {"run_id": run_id, "pairs": len(report.outcomes)})
    log_sync_event("sync_completed", {**report.summary(), "elapsed_ms": round(elapsed_ms, 1)}, run_id=run_id)
    return report


__all__ = [
    "SyncOptions",
    "run_sync",
    "fetch_workloads",
    "fetch_monitors",
    "resolve_integrations",
    "common_tags_by_namespace",
]
