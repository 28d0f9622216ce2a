"""
SASC Kernel — Resource Cache

Content-addressed store of individual resources for one resource type,
keyed by id. Every function is pure: it returns a new mapping and never
modifies its input, so a cache read by a running saga can't change under it.

Entry invariant: an errored entry has resource=None and stays errored
until a fresh successful write for the same id.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from sasc.kernel.types import CacheEntry, now_ms

Cache = Mapping[str, CacheEntry]


def make_cache(resources: Iterable[dict[str, Any]] = ()) -> dict[str, CacheEntry]:
    """Build a cache pre-populated with resources."""
    return put_many({}, resources)


def put(cache: Cache, resource: dict[str, Any]) -> dict[str, CacheEntry]:
    """Write a resource, clearing any error flag on its entry."""
    resource_id = _key(resource["id"])
    entry = _update_entry(cache.get(resource_id), resource_id, resource)
    return {**cache, resource_id: entry}


def put_many(cache: Cache, resources: Iterable[dict[str, Any]]) -> dict[str, CacheEntry]:
    result = dict(cache)
    for resource in resources:
        resource_id = _key(resource["id"])
        result[resource_id] = _update_entry(result.get(resource_id), resource_id, resource)
    return result


def remove(cache: Cache, resource_id: Any) -> dict[str, CacheEntry]:
    key = _key(resource_id)
    return {k: v for k, v in cache.items() if k != key}


def put_error(cache: Cache, resource_id: Any) -> dict[str, CacheEntry]:
    """Record a failed fetch, replacing any earlier success."""
    key = _key(resource_id)
    return {**cache, key: _update_entry(cache.get(key), key, None, error=True)}


def put_errors(cache: Cache, resource_ids: Iterable[Any]) -> dict[str, CacheEntry]:
    result = dict(cache)
    for resource_id in resource_ids:
        key = _key(resource_id)
        result[key] = _update_entry(result.get(key), key, None, error=True)
    return result


def is_known(cache: Cache | None, resource_id: Any) -> bool:
    """True if the id has an entry, errored or not."""
    return bool(cache) and _key(resource_id) in cache


def is_errored(cache: Cache | None, resource_id: Any) -> bool:
    if not cache:
        return False
    entry = cache.get(_key(resource_id))
    return entry is not None and entry.error


def get_by_id(cache: Cache | None, resource_id: Any) -> dict[str, Any] | None:
    if not cache:
        return None
    return _resource_if_present(cache.get(_key(resource_id)))


def get_by(cache: Cache | None, attribute: str, value: Any) -> dict[str, Any] | None:
    """
    Find a resource by attribute value. With more than one match there is
    no guarantee which one comes back; use it for unique attributes.
    """
    if attribute == "id":
        return get_by_id(cache, value)
    for entry in (cache or {}).values():
        if entry.resource is None or entry.error:
            continue
        if attribute in entry.resource and _loosely_equal(entry.resource[attribute], value):
            return entry.resource
    return None


def lookup(
    cache: Cache | None, resource_ids: Iterable[Any]
) -> tuple[list[dict[str, Any]], list[str], list[str]]:
    """
    Partition requested ids in one pass.

    Returns (hits, missing_ids, errored_ids): errored entries go to
    errored_ids, absent ids to missing_ids, and everything else comes back
    as resources in hits, in request order.
    """
    hits: list[dict[str, Any]] = []
    missing: list[str] = []
    errored: list[str] = []

    for resource_id in resource_ids:
        key = _key(resource_id)
        if is_errored(cache, key):
            errored.append(key)
            continue
        found = get_by_id(cache, key)
        if found is None:
            missing.append(key)
        else:
            hits.append(found)

    return hits, missing, errored


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _key(resource_id: Any) -> str:
    return str(resource_id)


def _resource_if_present(entry: CacheEntry | None) -> dict[str, Any] | None:
    if entry is None or entry.error or entry.resource is None:
        return None
    return entry.resource


def _update_entry(
    prior: CacheEntry | None,
    resource_id: str,
    resource: dict[str, Any] | None,
    error: bool = False,
) -> CacheEntry:
    now = now_ms()
    return CacheEntry(
        id=resource_id,
        resource=resource,
        error=error,
        created_at=prior.created_at if prior is not None else now,
        updated_at=now,
    )


def _loosely_equal(left: Any, right: Any) -> bool:
    """Equality that treats "7" and 7 as the same value, as query strings do."""
    if left == right:
        return True
    if isinstance(left, str) and _is_number(right):
        return left == str(right)
    if isinstance(right, str) and _is_number(left):
        return right == str(left)
    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)
