from __future__ import annotations

import copy
from typing import Any, Iterator, List, Tuple

from iac_reviewer.iac.patterns import FORBIDDEN_FIELDS
from iac_reviewer.iac.sanitize import (
    is_safe_value,
    sanitize_resources,
    sanitize_resources_with_changes,
)
from iac_reviewer.iac.validate import validate_no_sensitive_data
from iac_reviewer.models import ResourceMetadata

GUID = "12345678-1234-1234-1234-123456789012"
RESOURCE_ID = "/subscriptions/abc/resourceGroups/rg/providers/Microsoft.Web/sites/app"


def _one(properties: Any, **kw: Any) -> ResourceMetadata:
    return ResourceMetadata(
        type=kw.get("type", "Microsoft.Storage/storageAccounts"),
        kind=kw.get("kind", "storage"),
        sku=kw.get("sku"),
        region=kw.get("region"),
        api_version=kw.get("api_version"),
        properties=properties,
    )


def _walk(obj: Any) -> Iterator[Tuple[str, Any]]:
    """Yield (key, value) for every mapping entry at any depth."""
    if isinstance(obj, dict):
        for k, v in obj.items():
            yield k, v
            yield from _walk(v)
    elif isinstance(obj, list):
        for item in obj:
            yield from _walk(item)


def _strings(obj: Any) -> List[str]:
    if isinstance(obj, str):
        return [obj]
    if isinstance(obj, dict):
        return [s for v in obj.values() for s in _strings(v)]
    if isinstance(obj, list):
        return [s for v in obj for s in _strings(v)]
    return []


HOSTILE = {
    "name": "prod-vm-01",
    "Id": RESOURCE_ID,
    "resourceId": RESOURCE_ID,
    "dependsOn": ["Microsoft.Network/networkInterfaces/nic1"],
    "adminPassword": "SuperSecret123!",
    "clientSecret": "abc",
    "primaryKey": "base64encodedkey==",
    "connectionString": "DefaultEndpointsProtocol=https;AccountName=x;AccountKey=y",
    "Tags": {"owner": "john.doe@company.com"},
    "description": "x" * 80,
    "correlation": GUID,
    "scope": "/subscriptions/abc/resourceGroups/rg",
    "blob": "QUJDREVGR0hJSktMTU5PUFFSU1RVVldYWVphYmNkZWZnaGlqa2xtbm9w",
    "version": "v" * 51,
    "nested": {
        "principalId": GUID,
        "tags": {"env": "prod"},
        "deeper": {"tenantId": GUID, "endpoint": "AccountKey=abc", "port": 443},
    },
    "allowedIpRanges": ["10.0.0.1", GUID],
    "rules": [{"port": 80}],
    "zones": [],
    "hardwareProfile": {"vmSize": "Standard_D2s_v3"},
    "httpsOnly": "Enabled",
    "accessTier": "Hot",
    "capacity": 3,
    "autoscale": True,
    "threshold": None,
}


def test_forbidden_keys_absent_at_every_depth() -> None:
    result = sanitize_resources([_one(copy.deepcopy(HOSTILE))])
    for key, _ in _walk(result.resources[0].safe_properties):
        lowered = key.lower()
        assert not any(f in lowered for f in FORBIDDEN_FIELDS), key


def test_tags_never_survive_any_case_any_depth() -> None:
    result = sanitize_resources([_one(copy.deepcopy(HOSTILE))])
    keys = [k.lower() for k, _ in _walk(result.resources[0].safe_properties)]
    assert "tags" not in keys
    assert "Tags" in result.removed_fields
    assert "tags" in result.removed_fields


def test_output_always_passes_validator() -> None:
    result = sanitize_resources([_one(copy.deepcopy(HOSTILE))])
    verdict = validate_no_sensitive_data(result.resources)
    assert verdict.valid, verdict.violations


def test_no_string_longer_than_fifty_survives() -> None:
    result = sanitize_resources([_one(copy.deepcopy(HOSTILE))])
    assert all(len(s) <= 50 for s in _strings(result.resources[0].safe_properties))
    assert "description" in result.removed_fields
    # whitelisted key does not bypass the length cap
    assert "version" in result.removed_fields


def test_safe_values_retained() -> None:
    result = sanitize_resources([_one(copy.deepcopy(HOSTILE))])
    props = result.resources[0].safe_properties
    assert props is not None
    assert props["hardwareProfile"] == {"vmSize": "Standard_D2s_v3"}
    assert props["httpsOnly"] == "Enabled"
    assert props["accessTier"] == "Hot"
    assert props["capacity"] == 3
    assert props["autoscale"] is True
    assert props["threshold"] is None
    assert props["nested"] == {"deeper": {"port": 443}}


def test_guid_value_stripped() -> None:
    result = sanitize_resources([_one({"correlation": GUID, "tier": GUID})])
    assert result.resources[0].safe_properties is None
    assert result.removed_fields == ["correlation", "tier"]


def test_resource_id_value_stripped() -> None:
    result = sanitize_resources([_one({"scope": "/subscriptions/x/resourceGroups/y"})])
    assert result.resources[0].safe_properties is None
    assert result.removed_fields == ["scope"]


def test_base64_blob_on_whitelisted_key_stripped() -> None:
    blob = "QUJD" * 10
    assert len(blob) == 40
    result = sanitize_resources([_one({"version": blob, "size": "A" * 45})])
    assert result.resources[0].safe_properties is None
    assert result.removed_fields == ["size", "version"]


def test_thirty_nine_char_base64_like_value_kept_on_whitelisted_key() -> None:
    value = "QUJD" * 9 + "QUJ"
    assert len(value) == 39
    result = sanitize_resources([_one({"version": value})])
    assert result.resources[0].safe_properties == {"version": value}
    assert result.removed_fields == []


def test_mixed_safety_array_dropped_whole_and_recorded() -> None:
    result = sanitize_resources(
        [_one({"allowedIpRanges": ["10.0.0.1", GUID], "zones": ["1", "2"]})]
    )
    assert result.resources[0].safe_properties == {"zones": ["1", "2"]}
    assert result.removed_fields == ["allowedIpRanges"]


def test_empty_array_and_array_of_objects_dropped() -> None:
    result = sanitize_resources([_one({"zones": [], "rules": [{"port": 80}]})])
    assert result.resources[0].safe_properties is None
    assert result.removed_fields == ["rules", "zones"]


def test_plain_string_length_bands() -> None:
    twenty = "a" * 20
    twenty_one = "a" * 21
    result = sanitize_resources(
        [_one({"short": twenty, "medium": twenty_one, "tier": twenty_one})]
    )
    assert result.resources[0].safe_properties == {"short": twenty, "tier": twenty_one}
    assert result.removed_fields == ["medium"]


def test_vm_end_to_end() -> None:
    vm = ResourceMetadata(
        type="Microsoft.Compute/virtualMachines",
        kind="vm",
        sku="Standard_D2s_v3",
        region="eastus",
        api_version="2023-03-01",
        properties={
            "hardwareProfile": {"vmSize": "Standard_D2s_v3"},
            "osProfile": {
                "computerName": "myvm",
                "adminUsername": "azureuser",
                "adminPassword": "P@ssw0rd1234!",
            },
        },
    )
    result = sanitize_resources([vm])

    out = result.resources[0]
    assert out.kind == "vm"
    assert out.sku == "Standard_D2s_v3"
    assert out.region == "eastus"
    assert out.api_version == "2023-03-01"
    assert out.safe_properties == {"hardwareProfile": {"vmSize": "Standard_D2s_v3"}}
    assert "adminPassword" in result.removed_fields
    assert "computerName" in result.removed_fields
    payload = out.to_payload()
    assert "adminPassword" not in repr(payload)
    assert payload["apiVersion"] == "2023-03-01"


def test_empty_input() -> None:
    result = sanitize_resources([])
    assert result.resources == []
    assert result.resource_count == 0
    assert result.removed_fields == []


def test_resource_without_properties_omits_safe_properties() -> None:
    result = sanitize_resources([_one(None)])
    assert result.resources[0].safe_properties is None
    assert "safeProperties" not in result.resources[0].to_payload()


def test_pure_and_deterministic() -> None:
    source = [_one(copy.deepcopy(HOSTILE))]
    snapshot = copy.deepcopy(source)
    first = sanitize_resources(source)
    second = sanitize_resources(source)
    assert source == snapshot
    assert first == second


def test_sanitizing_sanitized_output_does_not_crash() -> None:
    first = sanitize_resources([_one(copy.deepcopy(HOSTILE))])
    again = [
        ResourceMetadata(
            type=r.type,
            kind=r.kind,
            sku=r.sku,
            region=r.region,
            api_version=r.api_version,
            properties=r.safe_properties,
        )
        for r in first.resources
    ]
    second = sanitize_resources(again)
    assert second.resources[0].safe_properties == first.resources[0].safe_properties
    assert second.removed_fields == []


def test_with_changes_sets_count_and_change() -> None:
    result = sanitize_resources_with_changes(
        [
            (_one({"accessTier": "Hot"}), "added"),
            (_one({"name": "x"}, kind="vm"), "removed"),
        ]
    )
    assert [(r.count, r.change) for r in result.resources] == [(1, "added"), (1, "removed")]
    assert result.removed_fields == ["name"]


def test_is_safe_value_predicate() -> None:
    assert is_safe_value(None)
    assert is_safe_value(0)
    assert is_safe_value(1.5)
    assert is_safe_value(False)
    assert is_safe_value("abc")
    assert is_safe_value("DISABLED")
    assert is_safe_value("Standard_LRS")
    assert not is_safe_value("a" * 21)
    assert not is_safe_value(GUID)
    assert not is_safe_value({"a": 1})
    assert not is_safe_value([1])
