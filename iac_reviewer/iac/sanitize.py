# iac_reviewer/iac/sanitize.py
"""
Privacy layer between extracted resource facts and anything that leaves the
process.

Rules, applied per ``properties`` key:
  - forbidden key (exact or substring, case-insensitive) -> dropped
  - ``tags`` (any case) -> dropped, values are never trusted
  - nested mapping -> recursed, kept only if something survives
  - sequence -> kept only when non-empty and every element is a safe value
  - scalar -> kept when it is a safe value, or when the key is a known
    display field and the value still honors the string limits

``type``, ``kind``, ``sku``, ``region`` and ``apiVersion`` are classification
and display labels and are copied verbatim.

Everything here is pure: the removed-field audit set is created per call and
threaded through explicitly.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from iac_reviewer.iac.patterns import (
    LONG_STRING_MAX,
    PLAIN_STRING_MAX,
    SAFE_PROPERTY_KEYS,
    SHORT_STRING_MAX,
    TAGS_FIELD,
    contains_sensitive_pattern,
    is_forbidden_field,
    is_safe_enum,
)
from iac_reviewer.models.resources import (
    ChangeType,
    ResourceMetadata,
    SanitizationResult,
    SanitizedResource,
)

log = logging.getLogger(__name__)

_JSON_NUMBER = (int, float)


def is_safe_value(value: Any) -> bool:
    """Safety predicate for a single (non-container) value."""
    if value is None or isinstance(value, bool) or isinstance(value, _JSON_NUMBER):
        return True
    if isinstance(value, str):
        if len(value) <= SHORT_STRING_MAX:
            return True
        if is_safe_enum(value):
            return True
        if contains_sensitive_pattern(value):
            return False
        if len(value) > LONG_STRING_MAX:
            return False
        return len(value) <= PLAIN_STRING_MAX
    # Containers and anything non-JSON are never a "safe value".
    return False


def _whitelisted_scalar(key: str, value: Any) -> bool:
    if key.lower() not in SAFE_PROPERTY_KEYS:
        return False
    if isinstance(value, str):
        return len(value) <= LONG_STRING_MAX and not contains_sensitive_pattern(value)
    return value is None or isinstance(value, (bool, int, float))


def _sanitize_properties(
    properties: Mapping[Any, Any],
    removed_fields: Set[str],
) -> Optional[Dict[str, Any]]:
    sanitized: Dict[str, Any] = {}

    for raw_key, value in properties.items():
        key = raw_key if isinstance(raw_key, str) else str(raw_key)

        if is_forbidden_field(key):
            removed_fields.add(key)
            continue

        if key.lower() == TAGS_FIELD:
            removed_fields.add(key)
            continue

        if isinstance(value, Mapping):
            nested = _sanitize_properties(value, removed_fields)
            if nested:
                sanitized[key] = nested
            continue

        if isinstance(value, (list, tuple)):
            # All or nothing: a partially redacted list could still identify.
            if value and all(is_safe_value(item) for item in value):
                sanitized[key] = list(value)
            else:
                removed_fields.add(key)
            continue

        if is_safe_value(value) or _whitelisted_scalar(key, value):
            sanitized[key] = value
        else:
            removed_fields.add(key)

    return sanitized or None


def _sanitize_one(
    resource: ResourceMetadata,
    removed_fields: Set[str],
    *,
    change: Optional[ChangeType] = None,
) -> SanitizedResource:
    safe_properties: Optional[Dict[str, Any]] = None
    if isinstance(resource.properties, Mapping):
        safe_properties = _sanitize_properties(resource.properties, removed_fields)

    return SanitizedResource(
        type=resource.type,
        kind=resource.kind,
        sku=resource.sku or None,
        region=resource.region or None,
        api_version=resource.api_version or None,
        safe_properties=safe_properties,
        count=1 if change is not None else None,
        change=change,
    )


def _finish(sanitized: List[SanitizedResource], removed_fields: Set[str]) -> SanitizationResult:
    removed = sorted(removed_fields)
    if removed:
        log.debug("Removed sensitive fields: %s", ", ".join(removed))
    log.debug("Sanitization complete: %d resource(s) sanitized", len(sanitized))
    return SanitizationResult(
        resources=sanitized,
        resource_count=len(sanitized),
        removed_fields=removed,
    )


def sanitize_resources(resources: Iterable[ResourceMetadata]) -> SanitizationResult:
    """
    Strip identifying data from extracted resources.

    Pure and total for well-typed input: never raises, never touches state
    outside the call, and the same input always yields the same output.
    """
    items = list(resources)
    log.debug("Sanitizing %d resource(s)", len(items))

    removed_fields: Set[str] = set()
    sanitized = [_sanitize_one(resource, removed_fields) for resource in items]
    return _finish(sanitized, removed_fields)


def sanitize_resources_with_changes(
    items: Iterable[Tuple[ResourceMetadata, ChangeType]],
) -> SanitizationResult:
    """Like :func:`sanitize_resources`, tagging each output with ``count=1``
    and the change status of the file it came from."""
    pairs = list(items)
    log.debug("Sanitizing %d resource(s) with change tracking", len(pairs))

    removed_fields: Set[str] = set()
    sanitized = [
        _sanitize_one(resource, removed_fields, change=change) for resource, change in pairs
    ]
    return _finish(sanitized, removed_fields)


__all__ = [
    "is_safe_value",
    "sanitize_resources",
    "sanitize_resources_with_changes",
]
