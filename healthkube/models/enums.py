"""Central Enum definitions for sync states.

These replace scattered string literals so actions, policies and outcome
statuses stay consistent across the reconciler, the engine and the CLI.
"""
from __future__ import annotations
import enum


class ActionKind(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    PAUSE = "pause"
    NOOP = "noop"
    SKIP = "skip"
    ORPHAN = "orphan"


class SuspendPolicy(str, enum.Enum):
    """What to do with the monitor of a suspended CronJob.

    ``pause`` is one-way: a paused monitor is not resumed when its CronJob
    is un-suspended, since a manual pause looks the same. Healthchecks
    resumes a paused check on its next ping.
    """
    SKIP = "skip"    # leave the remote monitor untouched, do not patch
    PAUSE = "pause"  # ensure the monitor exists and is paused, then patch


class OutcomeStatus(str, enum.Enum):
    OK = "OK"
    PLANNED = "PLANNED"
    RECONCILE_FAILED = "RECONCILE_FAILED"
    PATCH_FAILED = "PATCH_FAILED"
    DELETED = "DELETED"
    REPORTED = "REPORTED"

    @property
    def is_failure(self) -> bool:
        return self in {OutcomeStatus.RECONCILE_FAILED, OutcomeStatus.PATCH_FAILED}


__all__ = [
    "ActionKind",
    "SuspendPolicy",
    "OutcomeStatus",
]
