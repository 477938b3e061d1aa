"""Core configuration & tunable sync rules.

Everything that may need adjusting between environments (service endpoints,
timeouts, retry/circuit thresholds, grace derivation, parallelism, naming)
is centralized here so it can be changed without diving into service logic.
Values come from environment variables where it makes sense; the CLI
overrides them per invocation through ``SyncOptions``. Dicts stay mutable so
tests can monkeypatch values.
"""
from __future__ import annotations

import os

# --------------------------- Remote endpoints ----------------------------- #
# Read/write Management API key of the Healthchecks project.
HC_API_KEY: str | None = os.getenv("HC_API_KEY") or None
HC_API_URL: str = os.getenv("HC_API_URL", "https://healthchecks.io")

# Name of the env var written into every container of a synced CronJob.
# Unset means monitors are reconciled but workloads are never patched.
K8S_ENV_KEY: str | None = os.getenv("K8S_ENV_KEY") or None
DEFAULT_ENV_KEY: str = "HEALTHCHECK_ID"

# Timezone for monitors whose CronJob does not declare one.
HC_DEFAULT_TIMEZONE: str = os.getenv("HC_DEFAULT_TIMEZONE", "UTC")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE: str | None = os.getenv("LOG_FILE") or None

# ------------------------------ HTTP client ------------------------------- #
HTTP_SETTINGS: dict[str, float] = {
	"total_timeout_seconds": float(os.getenv("HC_HTTP_TIMEOUT", "30")),
	"connect_timeout_seconds": 10.0,
}

# Kubernetes API request timeout (passed as _request_timeout).
KUBE_REQUEST_TIMEOUT: float = float(os.getenv("KUBE_REQUEST_TIMEOUT", "30"))

# --------------------------------- Backoff -------------------------------- #
BACKOFF_POLICY: dict[str, int | float] = {
	"base_seconds": 1,
	"factor": 2,          # Exponential factor
	"max_seconds": 30,
	"max_attempts": 4,
	"jitter_pct": 0.10,   # +/-10% jitter
}

# ----------------------------- Circuit Breaker ---------------------------- #
CIRCUIT_BREAKER: dict[str, int | float] = {
	"failure_threshold": 5,          # Consecutive failures before OPEN
	"open_cooldown_seconds": 60,
	"half_open_probe_count": 1,
}

# ------------------------------ Grace period ------------------------------ #
GRACE_POLICY: dict[str, int] = {
	# Added on top of the shortest interval between two fire times.
	"safety_margin_seconds": 300,
	# Consecutive fire times inspected when looking for the shortest interval.
	"sample_count": 1000,
	# Bounds accepted by the Healthchecks API for "grace".
	"min_seconds": 60,
	"max_seconds": 31_536_000,
}

# ------------------------------- Parallelism ------------------------------ #
CONCURRENCY_SETTINGS: dict[str, int] = {
	"max_parallel_fetches": 4,   # one fetch per (context, namespace)
	"max_parallel_pairs": 8,     # independent pair reconciliations
}

# --------------------------------- Naming --------------------------------- #
NAMING_SETTINGS: dict[str, int | str] = {
	"key_version": 1,
	"managed_tag": "healthkube",
	# A name segment shared by more than `tag_rank` jobs becomes a tag.
	"tag_rank": 2,
}

__all__ = [
	"HC_API_KEY",
	"HC_API_URL",
	"K8S_ENV_KEY",
	"DEFAULT_ENV_KEY",
	"HC_DEFAULT_TIMEZONE",
	"LOG_LEVEL",
	"LOG_FILE",
	"HTTP_SETTINGS",
	"KUBE_REQUEST_TIMEOUT",
	# Rule groups
	"BACKOFF_POLICY",
	"CIRCUIT_BREAKER",
	"GRACE_POLICY",
	"CONCURRENCY_SETTINGS",
	"NAMING_SETTINGS",
]
