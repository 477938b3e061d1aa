"""In-memory circuit breaker per remote service (process-local, one run)."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict

from healthkube.config import CIRCUIT_BREAKER


@dataclass
class BreakerState:
    failures: int = 0
    state: str = "CLOSED"
    opened_at: datetime | None = None
    half_open_probes: int = 0


class CircuitBreaker:
    def __init__(self, *, failure_threshold: int | None = None, cooldown_seconds: float | None = None, probe_count: int | None = None):
        self._states: Dict[str, BreakerState] = {}
        self.failure_threshold = int(failure_threshold if failure_threshold is not None else CIRCUIT_BREAKER["failure_threshold"])
        self.cooldown_seconds = float(cooldown_seconds if cooldown_seconds is not None else CIRCUIT_BREAKER["open_cooldown_seconds"])
        self.probe_count = int(probe_count if probe_count is not None else CIRCUIT_BREAKER["half_open_probe_count"])

    def _get(self, service: str) -> BreakerState:
        return self._states.setdefault(service, BreakerState())

    def allow_call(self, service: str) -> tuple[bool, str | None]:
        st = self._get(service)
        if st.state == "CLOSED":
            return True, None
        if st.state == "OPEN":
            if st.opened_at and datetime.now(timezone.utc) - st.opened_at >= timedelta(seconds=self.cooldown_seconds):
                st.state = "HALF_OPEN"
                st.half_open_probes = 0
            else:
                return False, "circuit_open"
        if st.state == "HALF_OPEN":
            if st.half_open_probes >= self.probe_count:
                return False, "half_open_probe_exhausted"
            st.half_open_probes += 1
            return True, None
        return True, None

    def record_success(self, service: str) -> None:
        st = self._get(service)
        st.failures = 0
        if st.state in {"OPEN", "HALF_OPEN"}:
            st.state = "CLOSED"
            st.opened_at = None
            st.half_open_probes = 0

    def record_failure(self, service: str) -> None:
        st = self._get(service)
        st.failures += 1
        if st.state == "CLOSED" and st.failures >= self.failure_threshold:
            st.state = "OPEN"
            st.opened_at = datetime.now(timezone.utc)
        elif st.state == "HALF_OPEN":
            st.state = "OPEN"
            st.opened_at = datetime.now(timezone.utc)


__all__ = ["CircuitBreaker", "BreakerState"]
