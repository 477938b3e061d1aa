"""Reconciler.

``plan`` decides the minimal action for one correspondence pair without
side effects; ``apply`` executes it and returns the monitor as confirmed by
the service. Only a monitor returned by ``apply`` may be written back into
a workload.

Decision table:

=====================  =========================  =====================
workload               existing monitor           action
=====================  =========================  =====================
suspended, skip        any                        SKIP
any other              none                       CREATE (+pause)
any other              config differs             UPDATE (+pause)
suspended, pause       same config, not paused    PAUSE
any other              same config                NOOP
=====================  =========================  =====================

Updates send the full desired config (replace semantics) so fields edited
by hand in the Healthchecks UI are reset.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from healthkube.errors import ReconcileError, RemoteServiceError
from healthkube.integrations.base import MonitorSource
from healthkube.models.descriptors import (
    CorrespondencePair,
    MonitorConfig,
    MonitorDescriptor,
    ReconcileAction,
)
from healthkube.models.enums import ActionKind, SuspendPolicy
from healthkube.services.grace_period import derive_grace_seconds, normalize_schedule
from healthkube.services.remote_call import RemoteCaller
from healthkube.utils import get_logger

logger = get_logger(__name__)

MONITOR_SERVICE = "healthchecks"


@dataclass(frozen=True)
class ReconcilePolicy:
    default_timezone: str = "UTC"
    integration_ids: frozenset[str] = frozenset()
    suspend_policy: SuspendPolicy = SuspendPolicy.SKIP
    grace_margin_seconds: Optional[int] = None


class Reconciler:
    def __init__(self, monitors: MonitorSource, policy: ReconcilePolicy, caller: Optional[RemoteCaller] = None):
        self.monitors = monitors
        self.policy = policy
        self.caller = caller or RemoteCaller()

    # ------------------------------------------------------------------ #
    # Decision
    # ------------------------------------------------------------------ #
    def desired_config(self, pair: CorrespondencePair, tags: frozenset[str] = frozenset()) -> MonitorConfig:
        workload = pair.workload
        try:
            expression, embedded_tz = normalize_schedule(workload.schedule)
            grace = derive_grace_seconds(expression, margin_seconds=self.policy.grace_margin_seconds)
        except ValueError as e:
            raise ReconcileError(f"{pair.key}: {e}") from e
        return MonitorConfig(
            name=pair.key,
            schedule=expression,
            timezone=workload.time_zone or embedded_tz or self.policy.default_timezone,
            grace=grace,
            integration_ids=self.policy.integration_ids,
            tags=tags,
            desc=f"CronJob {workload.namespace}/{workload.name} (context {workload.context})",
        )

    def plan(self, pair: CorrespondencePair, tags: frozenset[str] = frozenset()) -> ReconcileAction:
        existing = pair.existing_monitor
        suspended = pair.workload.suspended
        if suspended and self.policy.suspend_policy == SuspendPolicy.SKIP:
            return ReconcileAction.skip(pair.key, existing)

        pause = suspended and self.policy.suspend_policy == SuspendPolicy.PAUSE
        config = self.desired_config(pair, tags)
        if existing is None:
            return ReconcileAction.create(pair.key, config, pause=pause)

        changes = config.diff(existing)
        if changes:
            return ReconcileAction.update(existing, config, changes, pause=pause and not existing.paused)
        if pause and not existing.paused:
            return ReconcileAction.pause_only(existing)
        return ReconcileAction.noop(existing)

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #
    async def _find_by_name(self, name: str) -> Optional[MonitorDescriptor]:
        for monitor in await self.monitors.list_monitors():
            if monitor.name == name:
                return monitor
        return None

    async def _create(self, config: MonitorConfig) -> MonitorDescriptor:
        return await self.caller.call(
            MONITOR_SERVICE,
            "create monitor",
            lambda: self.monitors.create_monitor(config),
            recover=lambda: self._find_by_name(config.name),
        )

    async def _update(self, monitor_id: str, config: MonitorConfig) -> MonitorDescriptor:
        return await self.caller.call(
            MONITOR_SERVICE,
            "update monitor",
            lambda: self.monitors.update_monitor(monitor_id, config),
        )

    async def _pause(self, monitor_id: str) -> MonitorDescriptor:
        return await self.caller.call(
            MONITOR_SERVICE,
            "pause monitor",
            lambda: self.monitors.pause_monitor(monitor_id),
        )

    async def apply(self, action: ReconcileAction) -> Optional[MonitorDescriptor]:
        """Execute ``action``; returns the persisted monitor, or None when there is none to use."""
        if action.kind == ActionKind.SKIP:
            return None
        if action.kind == ActionKind.ORPHAN:
            raise ReconcileError(f"orphan {action.key!r} is removed with delete_orphan, not applied")
        if action.kind in {ActionKind.CREATE, ActionKind.UPDATE} and action.config is None:
            raise ReconcileError(f"{action.kind.value} of monitor {action.key!r} has no desired config")
        if action.kind != ActionKind.CREATE and action.existing is None:
            raise ReconcileError(f"{action.kind.value} of monitor {action.key!r} has no existing monitor")

        try:
            if action.kind == ActionKind.CREATE:
                monitor = await self._create(action.config)
                logger.info("Monitor created", key=action.key, monitor_id=monitor.id)
            elif action.kind == ActionKind.UPDATE:
                monitor = await self._update(action.existing.id, action.config)
                logger.info("Monitor updated", key=action.key, monitor_id=monitor.id, changes=",".join(action.changes))
            else:
                monitor = action.existing

            if action.pause and not monitor.paused:
                monitor = await self._pause(monitor.id)
                logger.info("Monitor paused", key=action.key, monitor_id=monitor.id)
            return monitor
        except RemoteServiceError as e:
            raise ReconcileError(f"{action.kind.value} of monitor {action.key!r} failed: {e}") from e

    async def delete_orphan(self, action: ReconcileAction) -> None:
        """Delete the monitor of an ORPHAN action. Only called when deletion was confirmed."""
        monitor = action.existing
        if action.kind != ActionKind.ORPHAN or monitor is None:
            raise ReconcileError(f"{action.kind.value} action for {action.key!r} is not an orphan")
        try:
            await self.caller.call(
                MONITOR_SERVICE,
                "delete monitor",
                lambda: self.monitors.delete_monitor(monitor.id),
            )
        except RemoteServiceError as e:
            raise ReconcileError(f"delete of orphan monitor {monitor.name!r} failed: {e}") from e
        logger.info("Orphan monitor deleted", key=monitor.name, monitor_id=monitor.id)


__all__ = ["Reconciler", "ReconcilePolicy", "MONITOR_SERVICE"]
