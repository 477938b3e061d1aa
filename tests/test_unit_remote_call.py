import asyncio

import pytest

from healthkube.errors import RemoteServiceError
from healthkube.services.remote_call import RemoteCaller
from healthkube.utils.circuit_breaker import CircuitBreaker


class Flaky:
    """Fails with the given errors, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.attempts = 0

    async def __call__(self):
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def _transient(status=503):
    return RemoteServiceError(f"HTTP {status}", service="healthchecks", status_code=status, transient=True)


def test_transient_failure_retried(caller):
    fn = Flaky([_transient()])
    assert asyncio.run(caller.call("healthchecks", "list_checks", fn)) == "ok"
    assert fn.attempts == 2


def test_gives_up_after_max_attempts(caller):
    fn = Flaky([_transient(), _transient(429), _transient()])
    with pytest.raises(RemoteServiceError) as exc:
        asyncio.run(caller.call("healthchecks", "list_checks", fn))
    assert exc.value.status_code == 429
    assert fn.attempts == 2


def test_permanent_failure_not_retried(caller):
    fn = Flaky([RemoteServiceError("HTTP 400", service="healthchecks", status_code=400)])
    with pytest.raises(RemoteServiceError):
        asyncio.run(caller.call("healthchecks", "create_check", fn))
    assert fn.attempts == 1


def test_recover_short_circuits_retry(caller):
    fn = Flaky([_transient(502)])
    recovered = []

    async def recover():
        recovered.append(True)
        return "found"

    assert asyncio.run(caller.call("healthchecks", "create_check", fn, recover=recover)) == "found"
    assert fn.attempts == 1
    assert recovered == [True]


def test_recover_returning_none_retries(caller):
    fn = Flaky([_transient(502)])

    async def recover():
        return None

    assert asyncio.run(caller.call("healthchecks", "create_check", fn, recover=recover)) == "ok"
    assert fn.attempts == 2


def test_open_circuit_fails_fast():
    async def no_sleep(_):
        return None

    caller = RemoteCaller(max_attempts=1, breaker=CircuitBreaker(failure_threshold=1), sleep=no_sleep, backoff=lambda attempt: 0.0)
    with pytest.raises(RemoteServiceError):
        asyncio.run(caller.call("kubernetes:prod", "list_cron_jobs", Flaky([_transient()])))
    fn = Flaky([])
    with pytest.raises(RemoteServiceError) as exc:
        asyncio.run(caller.call("kubernetes:prod", "list_cron_jobs", fn))
    assert "circuit breaker" in str(exc.value)
    assert fn.attempts == 0


def test_backoff_delays_passed_to_sleep():
    slept = []

    async def record_sleep(delay):
        slept.append(delay)

    caller = RemoteCaller(max_attempts=3, breaker=CircuitBreaker(), sleep=record_sleep, backoff=lambda attempt: attempt * 1.5)
    asyncio.run(caller.call("healthchecks", "list_checks", Flaky([_transient(), _transient()])))
    assert slept == [1.5, 3.0]


def test_rejected_requests_do_not_count_towards_the_breaker():
    async def no_sleep(_):
        return None

    breaker = CircuitBreaker(failure_threshold=2)
    caller = RemoteCaller(max_attempts=1, breaker=breaker, sleep=no_sleep, backoff=lambda attempt: 0.0)
    for _ in range(5):
        with pytest.raises(RemoteServiceError):
            asyncio.run(caller.call("healthchecks", "create_check", Flaky([
                RemoteServiceError("HTTP 400", service="healthchecks", status_code=400),
            ])))
    assert breaker.allow_call("healthchecks") == (True, None)
    assert asyncio.run(caller.call("healthchecks", "create_check", Flaky([]))) == "ok"
