# iac_reviewer/models/resources.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from iac_reviewer.models.base import AppBaseModel

ChangeType = Literal["added", "modified", "removed"]


@dataclass
class ResourceMetadata:
    """
    Facts pulled from one compiled template resource.

    UNTRUSTED: ``properties`` may carry names, secrets and identifiers. Only
    the sanitizer may turn this into something that leaves the process.
    """

    type: str = "unknown"
    kind: str = "other"
    sku: Optional[str] = None
    region: Optional[str] = None
    api_version: Optional[str] = None
    properties: Optional[Dict[str, Any]] = None


@dataclass
class ExtractionResult:
    resources: List[ResourceMetadata]
    resource_count: int
    kinds_detected: List[str]


class SanitizedResource(AppBaseModel):
    """
    Transmit-safe view of a resource. This is the wire contract: anything
    else reaching the analyzer is treated as untrusted and re-validated.
    """

    type: str
    kind: str
    sku: Optional[str] = None
    region: Optional[str] = None
    api_version: Optional[str] = Field(default=None, alias="apiVersion")
    safe_properties: Optional[Dict[str, Any]] = Field(default=None, alias="safeProperties")
    count: Optional[int] = None
    change: Optional[ChangeType] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict using wire names; unset optional fields are omitted."""
        out: Dict[str, Any] = {"type": self.type, "kind": self.kind}
        if self.sku is not None:
            out["sku"] = self.sku
        if self.region is not None:
            out["region"] = self.region
        if self.api_version is not None:
            out["apiVersion"] = self.api_version
        if self.safe_properties is not None:
            out["safeProperties"] = self.safe_properties
        if self.count is not None:
            out["count"] = self.count
        if self.change is not None:
            out["change"] = self.change
        return out


@dataclass
class SanitizationResult:
    resources: List[SanitizedResource]
    resource_count: int
    # Audit trail only; never influences what is kept.
    removed_fields: List[str] = field(default_factory=list)


@dataclass
class ValidationResult:
    valid: bool
    violations: List[str] = field(default_factory=list)


__all__ = [
    "ChangeType",
    "ResourceMetadata",
    "ExtractionResult",
    "SanitizedResource",
    "SanitizationResult",
    "ValidationResult",
]
