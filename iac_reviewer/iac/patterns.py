# iac_reviewer/iac/patterns.py
"""
Pattern and field tables shared by the sanitizer and the validator.

The two consumers stay separate modules on purpose: the sanitizer decides
what to keep, the validator re-scans whatever is about to leave the process.
Only the constants and the two primitive predicates live here.
"""

from __future__ import annotations

import re
from typing import FrozenSet

# 8-4-4-4-12 hex, anywhere in the value
RX_GUID = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.I)
# Azure resource ID path fragment
RX_RESOURCE_ID = re.compile(r"/subscriptions/[^/]+/resourceGroups/", re.I)
RX_CONNECTION_STRING = re.compile(
    r"(AccountName|AccountKey|DefaultEndpointsProtocol|EndpointSuffix)=", re.I
)
# Whole value looks like base64 and is long enough to be key material
RX_BASE64_LONG = re.compile(r"[A-Za-z0-9+/]{40,}={0,2}")

RX_SAFE_ENUM = re.compile(
    r"(enabled?|disabled?|true|false|yes|no|on|off|allow|deny|accept|reject)", re.I
)

# Matched case-insensitively, exact or as a substring of the key.
FORBIDDEN_FIELDS: FrozenSet[str] = frozenset(
    {
        "name",
        "id",
        "resourceid",
        "dependson",
        "password",
        "secret",
        "key",
        "apikey",
        "connectionstring",
        "accesskey",
        "token",
        "credential",
        "credentials",
        "principalid",
        "tenantid",
        "clientid",
        "clientsecret",
        "subscriptionid",
    }
)

# Keys whose scalar values are display metadata (sizes, toggles, ports).
SAFE_PROPERTY_KEYS: FrozenSet[str] = frozenset(
    {
        "tier",
        "capacity",
        "size",
        "count",
        "enabled",
        "disabled",
        "replicas",
        "instances",
        "cores",
        "memory",
        "storage",
        "maxsize",
        "minsize",
        "autoscale",
        "version",
        "protocol",
        "port",
        "timeout",
        "retries",
        "interval",
        "threshold",
    }
)

TAGS_FIELD = "tags"

SHORT_STRING_MAX = 3
PLAIN_STRING_MAX = 20
LONG_STRING_MAX = 50


def is_forbidden_field(field_name: str) -> bool:
    lowered = str(field_name).lower()
    if lowered in FORBIDDEN_FIELDS:
        return True
    return any(forbidden in lowered for forbidden in FORBIDDEN_FIELDS)


def contains_sensitive_pattern(value: str) -> bool:
    if RX_GUID.search(value):
        return True
    if RX_RESOURCE_ID.search(value):
        return True
    if RX_CONNECTION_STRING.search(value):
        return True
    if RX_BASE64_LONG.fullmatch(value):
        return True
    return False


def is_safe_enum(value: str) -> bool:
    return RX_SAFE_ENUM.fullmatch(value) is not None


__all__ = [
    "RX_GUID",
    "RX_RESOURCE_ID",
    "RX_CONNECTION_STRING",
    "RX_BASE64_LONG",
    "RX_SAFE_ENUM",
    "FORBIDDEN_FIELDS",
    "SAFE_PROPERTY_KEYS",
    "TAGS_FIELD",
    "SHORT_STRING_MAX",
    "PLAIN_STRING_MAX",
    "LONG_STRING_MAX",
    "is_forbidden_field",
    "contains_sensitive_pattern",
    "is_safe_enum",
]
