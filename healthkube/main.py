"""
Command-line entry point.

Parses flags, sets up logging, wires the Kubernetes and Healthchecks clients
into one sync pass and maps the result onto the exit status:

* 0: every pair reconciled (and patched)
* 1: at least one pair or orphan deletion failed
* 2: fatal configuration, parse, collision or enumeration error
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional, Sequence, TextIO

from healthkube import __version__
from healthkube.config import (
    CONCURRENCY_SETTINGS,
    DEFAULT_ENV_KEY,
    GRACE_POLICY,
    HC_API_KEY,
    HC_API_URL,
    HC_DEFAULT_TIMEZONE,
    K8S_ENV_KEY,
    LOG_FILE,
    LOG_LEVEL,
    NAMING_SETTINGS,
)
from healthkube.errors import ConfigurationError, HealthkubeError
from healthkube.integrations.healthchecks import HealthchecksClient
from healthkube.integrations.kubernetes import KubernetesWorkloadSource
from healthkube.models.enums import SuspendPolicy
from healthkube.models.report import SyncReport
from healthkube.services.monitor_naming import SUPPORTED_KEY_VERSIONS
from healthkube.services.sync_engine import SyncOptions, run_sync
from healthkube.services.target_resolver import resolve_targets
from healthkube.utils import get_logger, setup_logging

logger = get_logger(__name__)

EXIT_FATAL = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="healthkube",
        description="Create and update Healthchecks monitors for Kubernetes CronJobs.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "targets",
        nargs="+",
        metavar="TARGET",
        help="Kubernetes context with optional namespaces: CONTEXT[:NAMESPACE(,NAMESPACE)*]",
    )
    parser.add_argument("--kubeconfig", default=None, help="Path to kubeconfig (default: $KUBECONFIG or ~/.kube/config)")
    parser.add_argument(
        "--env-key",
        default=K8S_ENV_KEY,
        help=f"Env var receiving the check id in every CronJob container [env: K8S_ENV_KEY, suggested: {DEFAULT_ENV_KEY}]. "
        "Without it CronJobs are not patched.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Compute and print the plan without altering anything")
    parser.add_argument(
        "--suspended-policy",
        choices=[p.value for p in SuspendPolicy],
        default=SuspendPolicy.SKIP.value,
        help="skip: leave monitors of suspended CronJobs untouched; pause: keep them configured and paused",
    )
    parser.add_argument("--delete-orphans", action="store_true", help="Delete managed monitors without a CronJob")
    parser.add_argument("--confirm-delete", action="store_true", help="Required together with --delete-orphans")

    hc = parser.add_argument_group("healthchecks")
    hc.add_argument("--hc-key", default=HC_API_KEY, help="Read/write Healthchecks API key [env: HC_API_KEY]")
    hc.add_argument("--hc-url", default=HC_API_URL, help="Healthchecks base URL [env: HC_API_URL]")
    integrations = hc.add_mutually_exclusive_group()
    integrations.add_argument(
        "--integration",
        dest="integrations",
        action="append",
        default=[],
        metavar="ID_OR_NAME",
        help="Integration (channel) to assign to every monitor; repeatable",
    )
    integrations.add_argument("--all-integrations", action="store_true", help="Assign every integration of the project")
    hc.add_argument("--timezone", default=HC_DEFAULT_TIMEZONE, help="Timezone for CronJobs that do not declare one")
    hc.add_argument(
        "--grace-margin",
        type=int,
        default=int(GRACE_POLICY["safety_margin_seconds"]),
        help="Seconds added to the shortest schedule interval to form the grace period",
    )
    hc.add_argument(
        "--key-version",
        type=int,
        choices=SUPPORTED_KEY_VERSIONS,
        default=int(NAMING_SETTINGS["key_version"]),
        help="Monitor name format: 1 = namespace/name, 2 = context/namespace/name",
    )
    hc.add_argument("--managed-tag", default=str(NAMING_SETTINGS["managed_tag"]), help="Tag marking monitors owned by healthkube")
    hc.add_argument(
        "--rank",
        type=int,
        default=int(NAMING_SETTINGS["tag_rank"]),
        help="A job name segment shared by more than RANK jobs becomes a tag",
    )

    runtime = parser.add_argument_group("runtime")
    runtime.add_argument("--parallel-fetches", type=int, default=int(CONCURRENCY_SETTINGS["max_parallel_fetches"]))
    runtime.add_argument("--parallel-pairs", type=int, default=int(CONCURRENCY_SETTINGS["max_parallel_pairs"]))
    runtime.add_argument("--log-level", default=LOG_LEVEL, choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    runtime.add_argument("--log-file", default=LOG_FILE, help="Also write JSON logs to this file")
    return parser


def options_from_args(args: argparse.Namespace) -> SyncOptions:
    return SyncOptions(
        env_key=args.env_key or None,
        all_integrations=args.all_integrations,
        integrations=tuple(args.integrations),
        suspend_policy=SuspendPolicy(args.suspended_policy),
        timezone=args.timezone,
        grace_margin_seconds=args.grace_margin,
        key_version=args.key_version,
        managed_tag=args.managed_tag,
        tag_rank=args.rank,
        dry_run=args.dry_run,
        delete_orphans=args.delete_orphans,
        confirm_delete=args.confirm_delete,
        max_parallel_fetches=args.parallel_fetches,
        max_parallel_pairs=args.parallel_pairs,
    )


def render_report(report: SyncReport, out: TextIO) -> None:
    if report.integration_ids:
        print(f"Using integrations: {','.join(report.integration_ids)}", file=out)
    for outcome in report.outcomes + report.orphans:
        detail = outcome.monitor_id or "-"
        if outcome.changes:
            detail += f" ({','.join(outcome.changes)})"
        if outcome.patched:
            detail += " [env]"
        if outcome.error:
            detail += f" ERROR: {outcome.error}"
        print(f"  {outcome.key: <50} {outcome.action.value: <7} {outcome.status.value: <16} {detail}", file=out)
    summary = report.summary()
    print(" ".join(f"{k}={v}" for k, v in summary.items()), file=out)


async def _run(args: argparse.Namespace) -> SyncReport:
    targets = resolve_targets(args.targets)
    options = options_from_args(args)
    if not args.hc_key:
        raise ConfigurationError('Unable to locate the Healthchecks API key. [Try setting an env var: "HC_API_KEY"]')
    if not args.hc_url:
        raise ConfigurationError('Unable to locate the Healthchecks API URL. [Try setting an env var: "HC_API_URL"]')

    workloads = KubernetesWorkloadSource(args.kubeconfig)
    async with HealthchecksClient(args.hc_key, args.hc_url) as monitors:
        return await run_sync(targets, workloads, monitors, options)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level, log_file=args.log_file, enable_console=True)

    try:
        report = asyncio.run(_run(args))
    except HealthkubeError as e:
        logger.error("Sync aborted", error=str(e), error_type=type(e).__name__)
        print(f"healthkube: {e}", file=sys.stderr)
        return EXIT_FATAL

    render_report(report, sys.stdout)
    if report.failures:
        print(f"healthkube: {len(report.failures)} failure(s)", file=sys.stderr)
    return report.exit_code


__all__ = ["main", "build_parser", "options_from_args", "render_report"]
