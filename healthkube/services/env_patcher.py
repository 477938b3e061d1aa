"""Env patcher.

Writes the ping id of a confirmed monitor into the CronJob environment. It
only accepts a ``MonitorDescriptor`` returned by ``Reconciler.apply``, which
makes it impossible to patch before the monitor is persisted. A crash
between the two steps is harmless: the next run finds the monitor by name
and patches then.
"""
from __future__ import annotations

from typing import Optional

from healthkube.errors import PatchError, RemoteServiceError
from healthkube.integrations.base import WorkloadSource
from healthkube.integrations.kubernetes import service_name
from healthkube.models.descriptors import MonitorDescriptor, WorkloadDescriptor
from healthkube.services.remote_call import RemoteCaller
from healthkube.utils import get_logger

logger = get_logger(__name__)


class EnvPatcher:
    def __init__(self, workloads: WorkloadSource, env_key: str, caller: Optional[RemoteCaller] = None):
        if not env_key:
            raise ValueError("env_key must be a non-empty env var name")
        self.workloads = workloads
        self.env_key = env_key
        self.caller = caller or RemoteCaller()

    @staticmethod
    def needs_patch(workload: WorkloadDescriptor, ping_id: str) -> bool:
        return workload.current_env_value != ping_id

    async def apply(self, workload: WorkloadDescriptor, monitor: MonitorDescriptor) -> bool:
        """Patch when the value drifted. Returns True if a write was issued."""
        if not self.needs_patch(workload, monitor.id):
            return False
        try:
            await self.caller.call(
                service_name(workload.context),
                "patch env var",
                lambda: self.workloads.patch_env_var(
                    workload.context,
                    workload.namespace,
                    workload.name,
                    self.env_key,
                    monitor.id,
                    containers=workload.containers or None,
                ),
            )
        except RemoteServiceError as e:
            raise PatchError(
                f"monitor {monitor.id} is persisted but writing {self.env_key} into {workload} failed: {e}"
            ) from e
        logger.info("Env var patched", workload=str(workload), env_key=self.env_key, monitor_id=monitor.id)
        return True


__all__ = ["EnvPatcher"]
