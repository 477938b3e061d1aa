"""Remote call wrapper applying circuit breaker, retries and backoff.

Every call to the orchestrator or to Healthchecks goes through
``RemoteCaller.call``. Only transient failures (connection errors,
timeouts, 429, 5xx) are retried and counted by the circuit breaker; a
rejected request (4xx) proves the service is up. For non-idempotent
operations the caller passes ``recover``: it runs before each retry and,
when it finds that the previous attempt took effect after all, its result is
returned instead of issuing the operation again.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from healthkube.config import BACKOFF_POLICY
from healthkube.errors import RemoteServiceError
from healthkube.utils import get_logger
from healthkube.utils.backoff import compute_backoff_seconds
from healthkube.utils.circuit_breaker import CircuitBreaker

logger = get_logger(__name__)

T = TypeVar("T")


class RemoteCaller:
    """Encapsulates resilient call logic shared by all remote operations of a run."""

    def __init__(
        self,
        *,
        max_attempts: Optional[int] = None,
        breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        backoff: Callable[[int], float] = compute_backoff_seconds,
    ):
        self.max_attempts = int(max_attempts or BACKOFF_POLICY["max_attempts"])
        self.breaker = breaker or CircuitBreaker()
        self._sleep = sleep
        self._backoff = backoff

    async def call(
        self,
        service: str,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        *,
        recover: Optional[Callable[[], Awaitable[Optional[T]]]] = None,
    ) -> T:
        attempts = 0
        while True:
            allow, reason = self.breaker.allow_call(service)
            if not allow:
                logger.warning("Remote call skipped due to circuit breaker", service=service, operation=operation, reason=reason)
                raise RemoteServiceError(
                    f"{operation} not attempted: circuit breaker for {service} is {reason}",
                    service=service,
                )

            attempts += 1
            try:
                result = await fn()
            except RemoteServiceError as e:
                if not e.transient:
                    # The service answered; a rejected request says nothing about its health
                    self.breaker.record_success(service)
                    raise
                self.breaker.record_failure(service)
                if attempts >= self.max_attempts:
                    raise
                delay = self._backoff(attempts)
                logger.warning(
                    "Remote call retry scheduled",
                    service=service,
                    operation=operation,
                    attempt=attempts,
                    backoff_seconds=round(delay, 2),
                    status_code=e.status_code,
                )
                await self._sleep(delay)
                if recover is not None:
                    recovered = await recover()
                    if recovered is not None:
                        logger.info("Previous attempt took effect, not retrying", service=service, operation=operation)
                        self.breaker.record_success(service)
                        return recovered
                continue

            self.breaker.record_success(service)
            return result


__all__ = ["RemoteCaller"]
