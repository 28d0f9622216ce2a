"""
SASC Kernel — Query Index

Maps a canonical query descriptor to the ordered id sequence the server
last returned for it. Pure functions; ids are kept in server order and
never deduplicated or re-sorted.

Canonicalization: empty nested mappings are dropped, so `{"filters": {}}`
and `{}` share a key. Empty lists are kept, because `{"id": []}` asks for
nothing while `{}` asks for everything.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from sasc.kernel.types import IndexEntry, now_ms

Index = Mapping[str, IndexEntry]


def make_index(resources: Iterable[dict[str, Any]] | None = None) -> dict[str, IndexEntry]:
    """Build an index, optionally seeded as if `resources` came from an unfiltered fetch."""
    if resources is None:
        return {}
    return add_query_results({}, {}, [r["id"] for r in resources])


def add_query_results(index: Index | None, query: Mapping[str, Any], ids: Iterable[Any]) -> dict[str, IndexEntry]:
    key = query_key(query)
    index = index or {}
    entry = _update_entry(index.get(key), key, tuple(str(i) for i in ids))
    return {**index, key: entry}


def set_error(index: Index | None, query: Mapping[str, Any]) -> dict[str, IndexEntry]:
    """Mark a query errored. Ids from an earlier success stay on the entry until overwritten."""
    key = query_key(query)
    index = index or {}
    prior = index.get(key)
    entry = _update_entry(prior, key, prior.ids if prior is not None else None, error=True)
    return {**index, key: entry}


def is_known(index: Index | None, query: Mapping[str, Any]) -> bool:
    """True if the query has an entry, errored or not."""
    return bool(index) and query_key(query) in index


def is_errored(index: Index | None, query: Mapping[str, Any]) -> bool:
    if not index:
        return False
    entry = index.get(query_key(query))
    return entry is not None and entry.error


def get_results(index: Index | None, query: Mapping[str, Any]) -> list[str] | None:
    """
    Ids last stored for a query, or None if it never resolved. An error
    does not clear them, so callers check is_errored first.
    """
    if not index:
        return None
    entry = index.get(query_key(query))
    if entry is None or entry.ids is None:
        return None
    return list(entry.ids)


def query_key(query: Mapping[str, Any] | None) -> str:
    """Canonical JSON for a query: empty mappings removed, keys sorted."""
    return json.dumps(
        remove_empty_values(query or {}),
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


def remove_empty_values(value: Any) -> Any:
    """
    Recursively drop mapping values that are (or become) empty mappings.
    Lists are walked but never dropped, even when empty.
    """
    if isinstance(value, Mapping):
        cleaned = {k: remove_empty_values(v) for k, v in value.items()}
        return {k: v for k, v in cleaned.items() if not (isinstance(v, Mapping) and not v)}
    if isinstance(value, list | tuple):
        return [remove_empty_values(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _update_entry(
    prior: IndexEntry | None,
    key: str,
    ids: tuple[str, ...] | None,
    error: bool = False,
) -> IndexEntry:
    now = now_ms()
    return IndexEntry(
        key=key,
        ids=ids,
        error=error,
        created_at=prior.created_at if prior is not None else now,
        updated_at=now,
    )
