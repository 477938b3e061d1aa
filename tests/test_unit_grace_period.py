import pytest

from healthkube.services.grace_period import (
    derive_grace_seconds,
    normalize_schedule,
    shortest_interval_seconds,
)


def test_fixed_interval_gets_fixed_margin():
    assert shortest_interval_seconds("*/5 * * * *") == 300
    assert derive_grace_seconds("*/5 * * * *", margin_seconds=120) == 420


def test_derivation_is_deterministic():
    results = {derive_grace_seconds("7,19,43 */3 * * 1-5", margin_seconds=60) for _ in range(5)}
    assert len(results) == 1


def test_irregular_schedule_uses_shortest_gap():
    # 02:00 and 02:30 every day: the 30 minute gap wins over the 23.5h one
    assert shortest_interval_seconds("0,30 2 * * *") == 1800


def test_weekdays_only():
    assert shortest_interval_seconds("0 9 * * 1-5") == 86400


def test_grace_clamped_to_api_bounds():
    assert derive_grace_seconds("* * * * *", margin_seconds=0) == 60
    assert derive_grace_seconds("0 0 1 1 *", margin_seconds=300) == 31_536_000


@pytest.mark.parametrize("macro,expected", [
    ("@hourly", "0 * * * *"),
    ("@daily", "0 0 * * *"),
    ("@midnight", "0 0 * * *"),
    ("@weekly", "0 0 * * 0"),
    ("@monthly", "0 0 1 * *"),
    ("@yearly", "0 0 1 1 *"),
    ("@annually", "0 0 1 1 *"),
])
def test_macros_translated(macro, expected):
    assert normalize_schedule(macro) == (expected, None)


def test_timezone_prefix_extracted():
    assert normalize_schedule("CRON_TZ=Europe/Berlin 0 3 * * *") == ("0 3 * * *", "Europe/Berlin")
    assert normalize_schedule("TZ=UTC   */10 * * * *") == ("*/10 * * * *", "UTC")


@pytest.mark.parametrize("schedule", ["", "every minute", "61 * * * *", "* * * *", "0 0 * * * *"])
def test_invalid_schedules_raise(schedule):
    with pytest.raises(ValueError):
        normalize_schedule(schedule)
