"""Error taxonomy for a sync run.

Fatal errors abort the invocation before (or instead of) per-pair work;
``ReconcileError`` and ``PatchError`` are collected per pair and only
affect the exit status.
"""
from __future__ import annotations

from typing import Any, Optional


class HealthkubeError(RuntimeError):
    """Base class for every error raised by healthkube."""


class ParseError(HealthkubeError):
    """A target string does not follow CONTEXT[:NAMESPACE(,NAMESPACE)*]."""

    def __init__(self, target: str, reason: str) -> None:
        super().__init__(f"Invalid target {target!r}: {reason}")
        self.target = target
        self.reason = reason


class ConfigurationError(HealthkubeError):
    """Missing API key/URL, unknown integration, conflicting flags."""


class IdentityCollisionError(HealthkubeError):
    """Two distinct workloads derive the same monitor name."""

    def __init__(self, key: str, first: Any, second: Any) -> None:
        super().__init__(
            f"Monitor name {key!r} derived for both {first} and {second}"
        )
        self.key = key
        self.first = first
        self.second = second


class RemoteServiceError(HealthkubeError):
    """A call to the orchestrator or the health-check service failed.

    ``transient`` marks failures worth retrying (connection problems,
    timeouts, HTTP 429 and 5xx).
    """

    def __init__(
        self,
        message: str,
        *,
        service: str,
        status_code: Optional[int] = None,
        transient: bool = False,
        payload: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.status_code = status_code
        self.transient = transient
        self.payload = payload


class RemoteFetchError(HealthkubeError):
    """Enumeration of workloads, monitors or integrations failed after retries."""


class ReconcileError(HealthkubeError):
    """Create/update/pause/delete of a single monitor failed."""


class PatchError(HealthkubeError):
    """Writing the ping id into a workload failed after the monitor was persisted."""


def is_transient_status(status_code: int | None) -> bool:
    if status_code is None:
        return True
    return status_code == 429 or 500 <= status_code < 600


__all__ = [
    "HealthkubeError",
    "ParseError",
    "ConfigurationError",
    "IdentityCollisionError",
    "RemoteServiceError",
    "RemoteFetchError",
    "ReconcileError",
    "PatchError",
    "is_transient_status",
]
