"""Target resolution.

A target string selects a kubeconfig context and, optionally, namespaces::

    CONTEXT[:NAMESPACE(,NAMESPACE)*]

``prod`` scans every namespace of context ``prod``; ``prod:batch,etl`` only
the two listed ones. Targets keep their input order and are not
de-duplicated; duplicate workloads are collapsed later by identity.
"""
from __future__ import annotations

import re
from typing import Iterable, Optional

from healthkube.errors import ParseError
from healthkube.models.descriptors import TargetSpec

# kubeconfig context names are free-form; only the grammar separators and whitespace are rejected
_CONTEXT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._@/+=-]*$")
# RFC 1123 label, as enforced by the API server for namespace names
_NAMESPACE_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
_NAMESPACE_MAX_LEN = 63


def parse_target(raw: str) -> TargetSpec:
    """Parse one target string into a TargetSpec or raise ParseError."""
    if raw is None or not raw.strip():
        raise ParseError(raw or "", "target is empty")
    target = raw.strip()

    context, sep, ns_part = target.partition(":")
    if not context:
        raise ParseError(raw, "context name is missing")
    if not _CONTEXT_RE.match(context):
        raise ParseError(raw, f"context name {context!r} contains invalid characters")

    if not sep:
        return TargetSpec(context=context)
    if not ns_part:
        raise ParseError(raw, "':' must be followed by at least one namespace")

    namespaces = set()
    for ns in ns_part.split(","):
        if not ns:
            raise ParseError(raw, "empty namespace in list")
        if len(ns) > _NAMESPACE_MAX_LEN or not _NAMESPACE_RE.match(ns):
            raise ParseError(raw, f"namespace {ns!r} is not a valid namespace name")
        namespaces.add(ns)
    return TargetSpec(context=context, namespaces=frozenset(namespaces))


def resolve_targets(raw_targets: Iterable[str]) -> list[TargetSpec]:
    """Parse every target; the first malformed one aborts the whole run."""
    targets = [parse_target(raw) for raw in raw_targets]
    if not targets:
        raise ParseError("", "at least one target is required")
    return targets


def expand_scopes(targets: Iterable[TargetSpec]) -> list[tuple[str, Optional[str]]]:
    """Flatten targets into the (context, namespace) fetches to run, in order."""
    scopes: list[tuple[str, Optional[str]]] = []
    for target in targets:
        scopes.extend(target.scopes())
    return scopes


__all__ = ["parse_target", "resolve_targets", "expand_scopes"]
