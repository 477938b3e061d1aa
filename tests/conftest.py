"""Pytest fixtures, fakes and factories.

The fakes implement the collaborator contracts in memory and append every
remote call to one shared ``CallLog`` so tests can assert on ordering
(create before patch) and on the absence of mutations (idempotence).
"""
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

import pytest

# Ensure project root on sys.path so 'healthkube' resolves without installation
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from healthkube.errors import RemoteServiceError  # noqa: E402
from healthkube.integrations.base import MonitorSource, WorkloadSource  # noqa: E402
from healthkube.models.descriptors import (  # noqa: E402
    IntegrationDescriptor,
    MonitorConfig,
    MonitorDescriptor,
    WorkloadDescriptor,
)
from healthkube.services.remote_call import RemoteCaller  # noqa: E402
from healthkube.utils.circuit_breaker import CircuitBreaker  # noqa: E402

MUTATIONS = {"create", "update", "pause", "delete", "patch"}


class CallLog(list):
    """Ordered record of (operation, subject) tuples."""

    def ops(self) -> list[str]:
        return [op for op, _ in self]

    def mutations(self) -> list[tuple[str, str]]:
        return [entry for entry in self if entry[0] in MUTATIONS]

    def index_of(self, op: str, subject: str) -> int:
        return self.index((op, subject))


class FakeWorkloadSource(WorkloadSource):
    def __init__(self, jobs: Sequence[WorkloadDescriptor], calls: CallLog):
        self.jobs = {job.identity: job for job in jobs}
        self.calls = calls
        self.env: dict[tuple[str, str, str], dict[str, str]] = {}
        self.fail_list: set[str] = set()
        self.fail_patch: set[str] = set()

    async def list_scheduled_jobs(self, context, namespace, env_key=None):
        self.calls.append(("list_jobs", f"{context}:{namespace or '*'}"))
        if context in self.fail_list:
            raise RemoteServiceError("connection refused", service=f"kubernetes:{context}", transient=True)
        result = []
        for job in self.jobs.values():
            if job.context != context or (namespace is not None and job.namespace != namespace):
                continue
            value = self.env.get(job.identity, {}).get(env_key, job.current_env_value) if env_key else None
            result.append(replace(job, current_env_value=value))
        return result

    async def patch_env_var(self, context, namespace, job_name, key, value, *, containers: Optional[Sequence[str]] = None):
        subject = f"{namespace}/{job_name}"
        self.calls.append(("patch", subject))
        if subject in self.fail_patch:
            raise RemoteServiceError("forbidden", service=f"kubernetes:{context}", status_code=403)
        self.env.setdefault((context, namespace, job_name), {})[key] = value


class FakeMonitorSource(MonitorSource):
    def __init__(self, calls: CallLog, monitors: Sequence[MonitorDescriptor] = (), integrations: Sequence[IntegrationDescriptor] = ()):
        self.calls = calls
        self.monitors: dict[str, MonitorDescriptor] = {m.id: m for m in monitors}
        self.integrations = list(integrations)
        self.fail_create: set[str] = set()
        # names whose create is refused with a 400 (e.g. an unknown timezone)
        self.reject_create: set[str] = set()
        self.fail_update: set[str] = set()
        # names whose create is persisted server-side but answered with a 502
        self.lost_create_response: set[str] = set()
        self.fail_list = False
        self._next_id = 0

    def _new_id(self) -> str:
        self._next_id += 1
        return f"00000000-0000-0000-0000-{self._next_id:012d}"

    @staticmethod
    def _from_config(monitor_id: str, config: MonitorConfig, status: str = "new") -> MonitorDescriptor:
        return MonitorDescriptor(
            id=monitor_id,
            name=config.name,
            schedule=config.schedule,
            timezone=config.timezone,
            grace=config.grace,
            integration_ids=config.integration_ids,
            tags=config.tags,
            status=status,
            desc=config.desc,
        )

    async def list_monitors(self):
        self.calls.append(("list_monitors", "*"))
        if self.fail_list:
            raise RemoteServiceError("HTTP 503", service="healthchecks", status_code=503, transient=True)
        return list(self.monitors.values())

    async def list_integrations(self):
        self.calls.append(("list_integrations", "*"))
        return list(self.integrations)

    async def create_monitor(self, config):
        self.calls.append(("create", config.name))
        if config.name in self.fail_create:
            raise RemoteServiceError("HTTP 500", service="healthchecks", status_code=500, transient=True)
        if config.name in self.reject_create:
            raise RemoteServiceError("HTTP 400", service="healthchecks", status_code=400)
        for existing in self.monitors.values():
            if existing.name == config.name:  # unique=["name"] upsert
                return existing
        monitor = self._from_config(self._new_id(), config)
        self.monitors[monitor.id] = monitor
        if config.name in self.lost_create_response:
            self.lost_create_response.discard(config.name)
            raise RemoteServiceError("HTTP 502", service="healthchecks", status_code=502, transient=True)
        return monitor

    async def update_monitor(self, monitor_id, config):
        self.calls.append(("update", config.name))
        if config.name in self.fail_update:
            raise RemoteServiceError("HTTP 500", service="healthchecks", status_code=500, transient=True)
        current = self.monitors[monitor_id]
        monitor = self._from_config(monitor_id, config, status=current.status)
        self.monitors[monitor_id] = monitor
        return monitor

    async def pause_monitor(self, monitor_id):
        monitor = replace(self.monitors[monitor_id], status="paused")
        self.calls.append(("pause", monitor.name))
        self.monitors[monitor_id] = monitor
        return monitor

    async def delete_monitor(self, monitor_id):
        monitor = self.monitors.pop(monitor_id)
        self.calls.append(("delete", monitor.name))


async def _no_sleep(_: float) -> None:
    return None


@pytest.fixture()
def calls():
    return CallLog()


@pytest.fixture()
def caller():
    """Fast caller: two attempts, no backoff delay, fresh breaker."""
    return RemoteCaller(max_attempts=2, breaker=CircuitBreaker(), sleep=_no_sleep, backoff=lambda attempt: 0.0)


# ---------- Data factory helpers ----------

@pytest.fixture()
def workload_factory():
    def _create(name: str, namespace: str = "batch", *, context: str = "prod", schedule: str = "*/5 * * * *", suspended: bool = False, **kwargs):
        return WorkloadDescriptor(
            context=context,
            namespace=namespace,
            name=name,
            schedule=schedule,
            suspended=suspended,
            containers=kwargs.pop("containers", ("main",)),
            **kwargs,
        )
    return _create


@pytest.fixture()
def monitor_factory():
    counter = {"n": 0}

    def _create(name: str, **kwargs):
        counter["n"] += 1
        defaults = dict(
            id=f"ffffffff-0000-0000-0000-{counter['n']:012d}",
            name=name,
            schedule="*/5 * * * *",
            timezone="UTC",
            grace=600,
            tags=frozenset({"healthkube"}),
            status="up",
        )
        defaults.update(kwargs)
        return MonitorDescriptor(**defaults)
    return _create
