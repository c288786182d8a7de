# iac_reviewer/iac/extract.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from iac_reviewer.errors import ParseError, SchemaError
from iac_reviewer.models.resources import ExtractionResult, ResourceMetadata

log = logging.getLogger(__name__)

# Exact, case-sensitive. Versioned or child types fall through to "other".
TYPE_TO_KIND: Dict[str, str] = {
    "Microsoft.Compute/virtualMachines": "vm",
    "Microsoft.Web/serverfarms": "app_service_plan",
    "Microsoft.Web/sites": "app_service",
    "Microsoft.Sql/servers/databases": "sql_db",
    "Microsoft.Storage/storageAccounts": "storage",
    "Microsoft.Network/virtualNetworks": "vnet",
    "Microsoft.Network/networkSecurityGroups": "nsg",
}

UNKNOWN_TYPE = "unknown"
OTHER_KIND = "other"


def normalize_resource_type(resource_type: str) -> str:
    return TYPE_TO_KIND.get(resource_type, OTHER_KIND)


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _extract_sku(resource: Mapping[str, Any]) -> Optional[str]:
    """
    First match wins:
      sku.name -> sku.tier -> properties.sku (string) -> properties.sku.name
    """
    sku = resource.get("sku")
    if isinstance(sku, Mapping):
        found = _non_empty_str(sku.get("name")) or _non_empty_str(sku.get("tier"))
        if found:
            return found

    properties = resource.get("properties")
    if isinstance(properties, Mapping):
        prop_sku = properties.get("sku")
        if isinstance(prop_sku, str):
            return prop_sku or None
        if isinstance(prop_sku, Mapping):
            return _non_empty_str(prop_sku.get("name"))
    return None


def _extract_properties(resource: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    properties = resource.get("properties")
    if isinstance(properties, Mapping):
        # Shallow copy; the sanitizer decides what survives.
        return dict(properties)
    return None


def _extract_one(resource: Mapping[str, Any]) -> ResourceMetadata:
    resource_type = _non_empty_str(resource.get("type")) or UNKNOWN_TYPE
    return ResourceMetadata(
        type=resource_type,
        kind=normalize_resource_type(resource_type),
        sku=_extract_sku(resource),
        region=_non_empty_str(resource.get("location")),
        api_version=_non_empty_str(resource.get("apiVersion")),
        properties=_extract_properties(resource),
    )


def _walk(resources: Sequence[Any], accumulated: List[ResourceMetadata]) -> None:
    for resource in resources:
        if not isinstance(resource, Mapping):
            continue
        accumulated.append(_extract_one(resource))
        children = resource.get("resources")
        if isinstance(children, list):
            _walk(children, accumulated)


def extract_resources(template: Any) -> ExtractionResult:
    """Flatten an already-parsed compiled template into resource facts."""
    if not isinstance(template, Mapping):
        raise SchemaError("ARM template is not a JSON object")

    top_level = template.get("resources")
    if not isinstance(top_level, list):
        raise SchemaError("ARM template is missing resources array or resources is not an array")

    resources: List[ResourceMetadata] = []
    _walk(top_level, resources)

    kinds_detected = list(dict.fromkeys(r.kind for r in resources))
    log.debug(
        "Extracted %d resource(s), kinds detected: %s",
        len(resources),
        ", ".join(kinds_detected),
    )
    return ExtractionResult(
        resources=resources,
        resource_count=len(resources),
        kinds_detected=kinds_detected,
    )


def extract_resource_metadata(arm_json: str) -> ExtractionResult:
    """
    Parse compiled template text and extract resource facts.

    Raises ParseError for invalid JSON and SchemaError when there is no
    top-level ``resources`` list.
    """
    log.debug("Extracting resource metadata from ARM template")
    try:
        template = json.loads(arm_json)
    except (TypeError, ValueError) as exc:
        raise ParseError(f"Failed to parse ARM JSON: {exc}") from exc
    return extract_resources(template)


__all__ = [
    "TYPE_TO_KIND",
    "normalize_resource_type",
    "extract_resources",
    "extract_resource_metadata",
]
