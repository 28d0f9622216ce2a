"""
SASC Kernel — Wire Packing

On the wire a resource is {id, type, attributes, relationships}. In memory
it is unpacked: attributes are lifted to the top level, relationships stay
nested.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

RESERVED_KEYS = ("id", "type", "relationships")


def unpack(datum: Mapping[str, Any] | None) -> dict[str, Any]:
    """{id, type, attributes, relationships} → {**attributes, id, type, relationships}."""
    datum = datum or {}
    return {
        **(datum.get("attributes") or {}),
        "id": datum.get("id"),
        "type": datum.get("type"),
        "relationships": datum.get("relationships"),
    }


def unpack_many(data: Iterable[Mapping[str, Any]] | None) -> list[dict[str, Any]]:
    return [unpack(datum) for datum in data or []]


def pack(resource: Mapping[str, Any]) -> dict[str, Any]:
    """Inverse of unpack. Every non-reserved key moves into attributes; empty top-level keys are dropped."""
    packed = {
        "id": resource.get("id"),
        "type": resource.get("type"),
        "attributes": {k: v for k, v in resource.items() if k not in RESERVED_KEYS},
        "relationships": resource.get("relationships"),
    }
    return {k: v for k, v in packed.items() if v}
