"""Collaborator contracts consumed by the sync engine."""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from healthkube.models.descriptors import (
    IntegrationDescriptor,
    MonitorConfig,
    MonitorDescriptor,
    WorkloadDescriptor,
)


class WorkloadSource(ABC):
    """Orchestrator side: scheduled jobs and their environment."""

    @abstractmethod
    async def list_scheduled_jobs(self, context: str, namespace: Optional[str], env_key: Optional[str] = None) -> List[WorkloadDescriptor]:
        """List scheduled jobs in ``namespace`` (all namespaces when ``None``).

        ``env_key`` selects which env var is reported as ``current_env_value``.
        """

    @abstractmethod
    async def patch_env_var(
        self,
        context: str,
        namespace: str,
        job_name: str,
        key: str,
        value: str,
        *,
        containers: Optional[Sequence[str]] = None,
    ) -> None:
        """Set ``key=value`` in the job template containers without touching other fields."""


class MonitorSource(ABC):
    """Health-check service side. The account scope is the project owning the API key."""

    @abstractmethod
    async def list_monitors(self) -> List[MonitorDescriptor]:
        ...

    @abstractmethod
    async def list_integrations(self) -> List[IntegrationDescriptor]:
        ...

    @abstractmethod
    async def create_monitor(self, config: MonitorConfig) -> MonitorDescriptor:
        ...

    @abstractmethod
    async def update_monitor(self, monitor_id: str, config: MonitorConfig) -> MonitorDescriptor:
        ...

    @abstractmethod
    async def pause_monitor(self, monitor_id: str) -> MonitorDescriptor:
        ...

    @abstractmethod
    async def delete_monitor(self, monitor_id: str) -> None:
        ...
