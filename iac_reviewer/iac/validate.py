# iac_reviewer/iac/validate.py
"""
Independent privacy check for any JSON-like payload.

Does not assume its input went through the sanitizer. It walks every key and
string value and reports what it finds; it never strips anything. Pydantic
models and dataclasses are expanded first; any other non-JSON value is
reported as unscannable. Callers that are about to transmit must treat a
non-empty violation list as a hard stop.
"""

from __future__ import annotations

import dataclasses
from typing import Any, List, Mapping

from pydantic import BaseModel

from iac_reviewer.iac.patterns import (
    RX_CONNECTION_STRING,
    RX_GUID,
    RX_RESOURCE_ID,
    is_forbidden_field,
)
from iac_reviewer.models.resources import SanitizedResource, ValidationResult


def _as_plain(obj: Any) -> Any:
    if isinstance(obj, SanitizedResource):
        return obj.to_payload()
    if isinstance(obj, BaseModel):
        return obj.model_dump(by_alias=True)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    return obj


def _scan(obj: Any, path: str, violations: List[str]) -> None:
    obj = _as_plain(obj)
    if obj is None or isinstance(obj, (bool, int, float)):
        return

    if isinstance(obj, str):
        where = path or "<root>"
        if RX_GUID.search(obj):
            violations.append(f"GUID found at {where}")
        if RX_RESOURCE_ID.search(obj):
            violations.append(f"Resource ID found at {where}")
        if RX_CONNECTION_STRING.search(obj):
            violations.append(f"Connection string found at {where}")
        return

    if isinstance(obj, (list, tuple)):
        for index, item in enumerate(obj):
            _scan(item, f"{path}[{index}]", violations)
        return

    if isinstance(obj, Mapping):
        for raw_key, value in obj.items():
            key = str(raw_key)
            child = f"{path}.{key}" if path else key
            if is_forbidden_field(key):
                violations.append(f"Forbidden field found: {child}")
            _scan(value, child, violations)
        return

    # Anything else cannot be proven clean.
    violations.append(f"Unscannable value at {path or '<root>'}")


def validate_no_sensitive_data(data: Any) -> ValidationResult:
    """Scan ``data`` for residual sensitive content. Never raises."""
    violations: List[str] = []
    _scan(data, "", violations)
    return ValidationResult(valid=not violations, violations=violations)


__all__ = ["validate_no_sensitive_data"]
