"""
Models package initialization.
Exposes the domain descriptors, enums and run report.
"""
from .enums import ActionKind, SuspendPolicy, OutcomeStatus
from .descriptors import (
    TargetSpec,
    WorkloadDescriptor,
    MonitorDescriptor,
    IntegrationDescriptor,
    MonitorConfig,
    CorrespondencePair,
    ReconcileAction,
)
from .report import PairOutcome, SyncReport

__all__ = [
    "ActionKind",
    "SuspendPolicy",
    "OutcomeStatus",
    "TargetSpec",
    "WorkloadDescriptor",
    "MonitorDescriptor",
    "IntegrationDescriptor",
    "MonitorConfig",
    "CorrespondencePair",
    "ReconcileAction",
    "PairOutcome",
    "SyncReport",
]
