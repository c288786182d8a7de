# iac_reviewer/telemetry/metrics.py
from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Tuple

from prometheus_client import REGISTRY, CollectorRegistry, Counter, write_to_textfile

_log = logging.getLogger(__name__)


def _best_effort(msg: str, fn: Callable[[], Any]) -> None:
    # Metrics must never fail a review run.
    try:
        fn()
    except Exception as e:  # pragma: no cover
        _log.debug("%s: %s", msg, e)


def _get_or_create_counter(
    name: str,
    doc: str,
    labelnames: Tuple[str, ...] = (),
    registry: Optional[CollectorRegistry] = None,
) -> Counter:
    reg = registry or REGISTRY
    names_map = getattr(reg, "_names_to_collectors", None)
    if isinstance(names_map, dict):
        existing = names_map.get(name)
        if isinstance(existing, Counter):
            return existing
    return Counter(name, doc, labelnames=labelnames, registry=reg)


# --- Privacy pipeline ----------------------------------------------------------

resources_sanitized_total = _get_or_create_counter(
    "iac_reviewer_resources_sanitized_total",
    "Resources passed through the sanitizer.",
)
fields_removed_total = _get_or_create_counter(
    "iac_reviewer_fields_removed_total",
    "Distinct property keys removed by the sanitizer per run.",
)
privacy_violations_total = _get_or_create_counter(
    "iac_reviewer_privacy_violations_total",
    "Outbound payloads blocked by the validator.",
)

# --- Analysis / backend --------------------------------------------------------

analysis_runs_total = _get_or_create_counter(
    "iac_reviewer_analysis_runs_total",
    "Analysis results by source.",
    ("source",),
)
backend_failures_total = _get_or_create_counter(
    "iac_reviewer_backend_failures_total",
    "Backend calls that fell back to the local summary, by kind.",
    ("kind",),
)

# --- Compilation ---------------------------------------------------------------

compilations_total = _get_or_create_counter(
    "iac_reviewer_compilations_total",
    "Bicep compilations by outcome.",
    ("outcome",),
)


# --- Helpers -------------------------------------------------------------------


def inc_resources_sanitized(count: int) -> None:
    if count > 0:
        _best_effort("inc resources_sanitized", lambda: resources_sanitized_total.inc(count))


def inc_fields_removed(count: int) -> None:
    if count > 0:
        _best_effort("inc fields_removed", lambda: fields_removed_total.inc(count))


def inc_privacy_violation() -> None:
    _best_effort("inc privacy_violations", lambda: privacy_violations_total.inc())


def inc_analysis(source: str) -> None:
    label = source or "unknown"
    _best_effort("inc analysis_runs", lambda: analysis_runs_total.labels(label).inc())


def inc_backend_failure(kind: str) -> None:
    label = kind or "error"
    _best_effort("inc backend_failures", lambda: backend_failures_total.labels(label).inc())


def inc_compilation(success: bool) -> None:
    outcome = "success" if success else "failure"
    _best_effort("inc compilations", lambda: compilations_total.labels(outcome).inc())


def write_textfile(path: Optional[str], registry: Optional[CollectorRegistry] = None) -> bool:
    """Dump the registry in Prometheus text format to ``path``.

    Returns False when no path is configured or the write failed; the
    failure is logged, never raised.
    """
    if not path:
        return False
    try:
        write_to_textfile(path, registry or REGISTRY)
    except OSError as e:
        _log.warning("Failed to write metrics textfile %s: %s", path, e)
        return False
    return True


__all__ = [
    "resources_sanitized_total",
    "fields_removed_total",
    "privacy_violations_total",
    "analysis_runs_total",
    "backend_failures_total",
    "compilations_total",
    "inc_resources_sanitized",
    "inc_fields_removed",
    "inc_privacy_violation",
    "inc_analysis",
    "inc_backend_failure",
    "inc_compilation",
    "write_textfile",
]
