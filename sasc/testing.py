"""
Test helpers, mostly for selector tests.

    state = build_resource_state([
        {"id": "1", "type": "dogs", "name": "Spot"},
        {"id": "2", "type": "cats", "name": "Whiskers"},
    ])
    assert dog_selectors.get_one(state, "1")["name"] == "Spot"
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from sasc.kernel import cache as cache_ops
from sasc.kernel import index as index_ops
from sasc.kernel.selectors import CacheMiss
from sasc.kernel.types import ResourceState


def build_resource_state(
    resources: Iterable[Mapping[str, Any]],
    default_sequences: Mapping[str, Iterable[Any]] | None = None,
) -> dict[str, ResourceState]:
    """
    Store state with resources cached as though an unfiltered collection
    fetch had returned them. default_sequences sets the unfiltered results
    of a type explicitly, e.g. {"cats": []} for a known-empty collection.
    """
    by_type: dict[str, list[dict[str, Any]]] = {}
    for resource in resources:
        if not resource.get("type"):
            raise ValueError("Missing type key on resource in build_resource_state")
        if not resource.get("id"):
            raise ValueError("Missing id key on resource in build_resource_state")
        by_type.setdefault(resource["type"], []).append(dict(resource))

    sequences: dict[str, list[Any]] = {t: [r["id"] for r in rs] for t, rs in by_type.items()}
    sequences.update({t: list(ids) for t, ids in (default_sequences or {}).items()})

    return {
        resource_type: ResourceState(
            cache=cache_ops.make_cache(by_type.get(resource_type, [])),
            index=index_ops.add_query_results({}, {}, ids),
        )
        for resource_type, ids in sequences.items()
    }


def trap_select(selector: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap a selector so a CacheMiss is returned instead of raised."""

    def trapped(state: Any, *args: Any) -> Any:
        try:
            return selector(state, *args)
        except CacheMiss as exc:
            return exc

    return trapped


def safe_select(selector: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap a selector so a miss yields its default placeholder."""
    trapped = trap_select(selector)

    def safe(state: Any, *args: Any) -> Any:
        value = trapped(state, *args)
        return value.default if isinstance(value, CacheMiss) else value

    return safe
