"""
Integrations package initialization.
Exports the collaborator contracts and their concrete clients.
"""
from .base import MonitorSource, WorkloadSource
from .healthchecks import HealthchecksClient
from .kubernetes import KubernetesWorkloadSource

__all__ = [
    "MonitorSource",
    "WorkloadSource",
    "HealthchecksClient",
    "KubernetesWorkloadSource",
]
