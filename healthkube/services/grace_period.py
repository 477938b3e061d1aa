"""Cron schedule normalization and grace-period derivation.

Pure functions only. The grace period is the shortest gap between two
consecutive fire times plus a safety margin, so a monitor never turns red
between two legitimate runs. Fire times are enumerated in UTC from a fixed
anchor, which keeps the result identical across runs and machines.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from croniter import croniter, CroniterBadCronError, CroniterBadDateError

from healthkube.config import GRACE_POLICY

_ANCHOR = datetime(2000, 1, 1)

# Healthchecks only understands five-field expressions
MACROS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}
_TZ_PREFIXES = ("CRON_TZ=", "TZ=")


def normalize_schedule(schedule: str) -> tuple[str, Optional[str]]:
    """Return (five-field expression, timezone embedded in the schedule or None).

    Raises ValueError for anything croniter cannot evaluate.
    """
    text = " ".join((schedule or "").split())
    if not text:
        raise ValueError("schedule is empty")

    tz: Optional[str] = None
    for prefix in _TZ_PREFIXES:
        if text.startswith(prefix):
            tz_part, _, text = text.partition(" ")
            tz = tz_part[len(prefix):] or None
            break

    expression = MACROS.get(text.lower(), text)
    if len(expression.split()) != 5:
        raise ValueError(f"schedule {schedule!r} is not a five-field cron expression")
    if not croniter.is_valid(expression):
        raise ValueError(f"schedule {schedule!r} is not a valid cron expression")
    return expression, tz


def shortest_interval_seconds(expression: str, sample_count: Optional[int] = None) -> int:
    samples = int(sample_count if sample_count is not None else GRACE_POLICY["sample_count"])
    try:
        itr = croniter(expression, _ANCHOR)
        previous = itr.get_next(datetime)
        shortest: Optional[float] = None
        for _ in range(max(samples, 1)):
            current = itr.get_next(datetime)
            gap = (current - previous).total_seconds()
            if shortest is None or gap < shortest:
                shortest = gap
            previous = current
    except (CroniterBadCronError, CroniterBadDateError) as e:
        raise ValueError(f"cannot evaluate cron expression {expression!r}: {e}") from e
    return int(shortest or 0)


def derive_grace_seconds(expression: str, *, margin_seconds: Optional[int] = None, sample_count: Optional[int] = None) -> int:
    """Shortest fire interval plus margin, clamped to what the API accepts."""
    margin = int(margin_seconds if margin_seconds is not None else GRACE_POLICY["safety_margin_seconds"])
    grace = shortest_interval_seconds(expression, sample_count) + margin
    return max(int(GRACE_POLICY["min_seconds"]), min(grace, int(GRACE_POLICY["max_seconds"])))


__all__ = [
    "MACROS",
    "normalize_schedule",
    "shortest_interval_seconds",
    "derive_grace_seconds",
]
