"""Monitor identity keys.

The monitor name *is* the correspondence key between a CronJob and its
Healthchecks check, so the derivation is versioned and must stay injective
and stable across runs. Changing the format means adding a new version and
migrating existing monitors deliberately, never editing an existing one.

Version 1: ``<namespace>/<name>``
Version 2: ``<context>/<namespace>/<name>``

Namespaces (RFC 1123 labels) and CronJob names (DNS subdomains) cannot
contain ``/``, which keeps both formats injective; version 2 is parsed from
the right because context names may contain ``/``.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional

from healthkube.config import NAMING_SETTINGS
from healthkube.models.descriptors import WorkloadDescriptor

SUPPORTED_KEY_VERSIONS = (1, 2)
TAG_SEPARATOR = "-"
IGNORED_TAG_SEGMENTS = frozenset({"job"})


@dataclass(frozen=True)
class MonitorKey:
    namespace: str
    name: str
    context: Optional[str] = None


def _version(version: Optional[int]) -> int:
    resolved = int(version if version is not None else NAMING_SETTINGS["key_version"])
    if resolved not in SUPPORTED_KEY_VERSIONS:
        raise ValueError(f"Unsupported key version {resolved}; expected one of {SUPPORTED_KEY_VERSIONS}")
    return resolved


def derive_monitor_name(workload: WorkloadDescriptor, version: Optional[int] = None) -> str:
    v = _version(version)
    if v == 1:
        return f"{workload.namespace}/{workload.name}"
    return f"{workload.context}/{workload.namespace}/{workload.name}"


def parse_monitor_name(name: str, version: Optional[int] = None) -> Optional[MonitorKey]:
    """Inverse of derive_monitor_name; None for names this version never produces."""
    v = _version(version)
    if v == 1:
        parts = name.split("/")
        if len(parts) != 2 or not all(parts):
            return None
        return MonitorKey(namespace=parts[0], name=parts[1])
    parts = name.rsplit("/", 2)
    if len(parts) != 3 or not all(parts):
        return None
    return MonitorKey(context=parts[0], namespace=parts[1], name=parts[2])


def extract_common_tags(job_names: Iterable[str], rank: Optional[int] = None) -> frozenset[str]:
    """Name segments shared by more than ``rank`` jobs.

    ``nightly-report-job`` and ``nightly-cleanup-job`` share ``nightly``;
    ``job`` itself is never a tag.
    """
    threshold = int(rank if rank is not None else NAMING_SETTINGS["tag_rank"])
    counts: Counter = Counter()
    for name in job_names:
        counts.update(segment for segment in name.split(TAG_SEPARATOR) if segment)
    return frozenset(
        segment for segment, count in counts.items()
        if count > threshold and segment not in IGNORED_TAG_SEGMENTS
    )


def tags_for(job_name: str, common_tags: frozenset[str], managed_tag: Optional[str] = None) -> frozenset[str]:
    tag = str(managed_tag if managed_tag is not None else NAMING_SETTINGS["managed_tag"])
    tags = {segment for segment in job_name.split(TAG_SEPARATOR) if segment in common_tags}
    if tag:
        tags.add(tag)
    return frozenset(tags)


__all__ = [
    "MonitorKey",
    "SUPPORTED_KEY_VERSIONS",
    "derive_monitor_name",
    "parse_monitor_name",
    "extract_common_tags",
    "tags_for",
]
