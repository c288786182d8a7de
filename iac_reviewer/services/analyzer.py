# iac_reviewer/services/analyzer.py
"""
Resource analysis: remote service when configured, deterministic local
summary otherwise.

The remote call is gated twice by the validator, once on the sanitized
resources and once on the aggregated wire rows, right before the request is
built. A violation aborts the transmission and the caller receives the local
summary; the payload is never stripped and retried.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from iac_reviewer.config import APP_NAME, APP_VERSION, DEFAULT_BACKEND_URL
from iac_reviewer.errors import PrivacyContractViolation
from iac_reviewer.iac.validate import validate_no_sensitive_data
from iac_reviewer.models.analysis import (
    AnalysisResult,
    ApiResource,
    BackendCallContext,
    BackendResponse,
)
from iac_reviewer.models.resources import SanitizedResource
from iac_reviewer.telemetry.metrics import (
    inc_analysis,
    inc_backend_failure,
    inc_privacy_violation,
)

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30.0
USER_AGENT = f"{APP_NAME}/{APP_VERSION}"
DETAILS_THRESHOLD = 5
# Envelope keys that identify the PR by intent; every other payload key is scanned.
_CONTEXT_KEYS = frozenset({"repo", "pr", "run", "context"})

KIND_LABELS: Dict[str, str] = {
    "vm": "Virtual Machines",
    "app_service": "App Services",
    "app_service_plan": "App Service Plans",
    "sql_db": "SQL Databases",
    "storage": "Storage Accounts",
    "vnet": "Virtual Networks",
    "nsg": "Network Security Groups",
    "other": "Other Resources",
}

PRIVACY_NOTE = (
    "This action analyzes anonymized resource metadata only - no source code or "
    "identifiers are transmitted. All sensitive information (names, IDs, secrets) "
    "is stripped before analysis."
)


class _BackendFailure(Exception):
    """Internal: the remote call did not produce a usable response."""

    def __init__(self, kind: str) -> None:
        super().__init__(kind)
        self.kind = kind


# --------------------------------- Local summary -------------------------------


def format_kind_label(kind: str) -> str:
    return KIND_LABELS.get(kind, kind.upper())


def generate_local_fallback(resources: Sequence[SanitizedResource]) -> str:
    """Markdown summary built only from resource kinds; no network involved."""
    # Counter keeps first-seen order and sorted() is stable, so ties stay put.
    tally = Counter(r.kind for r in resources)
    ordered = sorted(tally.items(), key=lambda item: item[1], reverse=True)
    total = len(resources)
    collapsible = total > DETAILS_THRESHOLD

    lines: List[str] = [
        "## Azure Resource Analysis",
        "",
        f"Detected **{total}** resource(s) in your Bicep files:",
        "",
    ]
    if collapsible:
        lines += [
            "<details>",
            f"<summary>📋 Resource Details ({total} resources)</summary>",
            "",
        ]
    for kind, count in ordered:
        lines.append(f"- **{format_kind_label(kind)}**: {count}")
    if collapsible:
        lines += ["", "</details>"]

    lines += [
        "",
        "---",
        "",
        "💡 **Want detailed cost estimates and security recommendations?**",
        "",
        "Add an API key to enable full analysis powered by ResourcePulse:",
        "",
        "```yaml",
        "- uses: resourcepulse-io/azure-iac-reviewer@v1",
        "  with:",
        "    api_key: ${{ secrets.RESOURCEPULSE_API_KEY }}",
        "```",
        "",
        "<details>",
        "<summary>🔒 Privacy Information</summary>",
        "",
        PRIVACY_NOTE,
        "",
        "</details>",
    ]
    return "\n".join(lines)


def _local(resources: Sequence[SanitizedResource], *, success: bool = True) -> AnalysisResult:
    inc_analysis("local")
    return AnalysisResult(
        success=success, source="local", markdown=generate_local_fallback(resources)
    )


# --------------------------------- Wire format ---------------------------------


def to_api_resources(resources: Sequence[SanitizedResource]) -> List[ApiResource]:
    """
    Aggregate sanitized resources into wire rows keyed by
    ``(kind, region, sku, change)``, in first-seen order. Resources without a
    change status count as ``modified``.
    """
    rows: Dict[Tuple[str, Optional[str], Optional[str], str], ApiResource] = {}
    for resource in resources:
        change = resource.change or "modified"
        key = (resource.kind, resource.region, resource.sku, change)
        row = rows.get(key)
        if row is None:
            rows[key] = ApiResource(
                kind=resource.kind,
                region=resource.region,
                sku=resource.sku,
                count=resource.count or 1,
                change=change,
            )
        else:
            row.count += resource.count or 1
    return list(rows.values())


def _api_payload(rows: Sequence[ApiResource]) -> List[Dict[str, Any]]:
    return [row.model_dump(exclude_none=True) for row in rows]


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _ensure_transmittable(
    resources: Sequence[SanitizedResource], payload: Dict[str, Any]
) -> None:
    outbound = {k: v for k, v in payload.items() if k not in _CONTEXT_KEYS}
    violations: List[str] = []
    for candidate in (list(resources), outbound):
        violations.extend(validate_no_sensitive_data(candidate).violations)
    if violations:
        log.error("Privacy contract violation detected - refusing to send data")
        log.error("Violations: %s", ", ".join(violations))
        inc_privacy_violation()
        raise PrivacyContractViolation(violations=violations)


# ---------------------------------- Remote call --------------------------------


async def _call_backend(
    client: httpx.AsyncClient,
    resources: Sequence[SanitizedResource],
    api_key: str,
    backend_url: str,
    call_context: BackendCallContext,
    timeout_s: float,
) -> BackendResponse:
    payload: Dict[str, Any] = {"resources": _api_payload(to_api_resources(resources))}
    payload.update(call_context.model_dump(by_alias=True))
    payload["timestamp"] = _utc_timestamp()
    _ensure_transmittable(resources, payload)

    url = f"{backend_url}/analyze"
    log.debug("Calling backend API: %s", url)
    log.debug("Sending %d sanitized resource(s)", len(resources))
    log.debug("Repository: %s", call_context.repo.full_name)

    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
        "User-Agent": USER_AGENT,
    }

    try:
        resp = await client.post(url, json=payload, headers=headers, timeout=timeout_s)
    except httpx.TimeoutException as e:
        log.warning("Backend request timed out after %dms", int(timeout_s * 1000))
        raise _BackendFailure("timeout") from e
    except httpx.TransportError as e:
        log.warning("Network error calling backend: %s", e)
        raise _BackendFailure("network") from e
    except httpx.HTTPError as e:
        log.warning("Error calling backend: %s", e)
        raise _BackendFailure("error") from e

    if not resp.is_success:
        log.warning("Backend returned status %d: %s", resp.status_code, resp.reason_phrase)
        try:
            body = BackendResponse.model_validate(resp.json())
        except (ValueError, ValidationError):
            body = None
        if body is not None and (body.error or body.message):
            log.warning("Backend error: %s", body.error or body.message)
        raise _BackendFailure("status")

    try:
        data = BackendResponse.model_validate(resp.json())
    except (ValueError, ValidationError) as e:
        log.warning("Error calling backend: invalid response body (%s)", e)
        raise _BackendFailure("malformed") from e

    log.debug("Backend response received successfully")
    return data


async def analyze_resources(
    resources: Sequence[SanitizedResource],
    *,
    api_key: Optional[str] = None,
    server_address: Optional[str] = None,
    call_context: Optional[BackendCallContext] = None,
    timeout_s: float = DEFAULT_TIMEOUT_S,
    client: Optional[httpx.AsyncClient] = None,
) -> AnalysisResult:
    """
    Produce the analysis markdown for ``resources``.

    Never raises for backend trouble: every failure, including a privacy
    contract violation, ends in the local summary.
    """
    log.debug("Starting resource analysis")
    log.debug("API key provided: %s", "yes" if api_key else "no")

    if not api_key:
        log.info("No API key provided - using local fallback analysis")
        return _local(resources)

    if call_context is None:
        log.info("No call context provided - using local fallback analysis")
        return _local(resources)

    backend_url = (server_address or DEFAULT_BACKEND_URL).rstrip("/")
    log.info("Attempting backend analysis at %s", backend_url)

    own_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout_s)
    try:
        response = await _call_backend(
            http, resources, api_key, backend_url, call_context, timeout_s
        )
    except PrivacyContractViolation:
        log.warning("Backend analysis aborted - falling back to local summary")
        return _local(resources)
    except _BackendFailure as failure:
        inc_backend_failure(failure.kind)
        log.warning("Backend analysis failed - falling back to local summary")
        return _local(resources)
    finally:
        if own_client:
            await http.aclose()

    if response.success is False:
        log.warning("Backend reported unsuccessful analysis: %s", response.error or "no details")
        return _local(resources, success=False)

    markdown = response.markdown or response.message
    if not markdown:
        inc_backend_failure("empty")
        log.warning("Backend analysis failed - falling back to local summary")
        return _local(resources)

    log.info("Backend analysis completed successfully")
    inc_analysis("backend")
    return AnalysisResult(success=True, source="backend", markdown=markdown)


__all__ = [
    "KIND_LABELS",
    "format_kind_label",
    "generate_local_fallback",
    "to_api_resources",
    "analyze_resources",
]
