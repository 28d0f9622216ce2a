"""
SASC Kernel — Reducer

Pure function: (ResourceState, Event) → ResourceState

Applies lifecycle events and notices for one resource type to its store
cell. Request events and unknown events return the state unchanged. The
input state is never modified; changed fields are replaced.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sasc.kernel import cache as cache_ops
from sasc.kernel import index as index_ops
from sasc.kernel import processes as process_ops
from sasc.kernel.types import (
    STATUS_COMPLETED,
    STATUS_ERRORED,
    STATUS_RUNNING,
    Event,
    OperationKind,
    Phase,
    ResourceState,
)

Handler = Callable[[ResourceState, Event], ResourceState]


def empty_state() -> ResourceState:
    return ResourceState()


def reduce(state: ResourceState | None, event: Event) -> ResourceState:
    """
    Apply one event to a resource type's state.
    Returns the same object when the event doesn't concern the store.
    """
    if state is None:
        state = empty_state()
    handler = _HANDLERS.get((event.operation.kind, event.phase))
    if handler is None:
        return state
    return handler(state, event)


def reduce_all(state: ResourceState | None, events: list[Event]) -> ResourceState:
    for event in events:
        state = reduce(state, event)
    return state if state is not None else empty_state()


# ---------------------------------------------------------------------------
# Fetches
# ---------------------------------------------------------------------------


def _collection_query(event: Event) -> dict[str, Any]:
    payload = event.request.payload or {}
    return {"filters": payload.get("filters") or {}}


def _fetch_initiated(state: ResourceState, event: Event) -> ResourceState:
    return state.evolve(fetching=True)


def _fetch_individual_succeeded(state: ResourceState, event: Event) -> ResourceState:
    # Individual fetches don't touch the index
    return state.evolve(cache=cache_ops.put(state.cache, event.payload), fetching=False)


def _fetch_individual_failed(state: ResourceState, event: Event) -> ResourceState:
    resource_id = (event.request.payload or {}).get("id")
    return state.evolve(cache=cache_ops.put_error(state.cache, resource_id), fetching=False)


def _fetch_collection_succeeded(state: ResourceState, event: Event) -> ResourceState:
    resources = event.payload or []
    return state.evolve(
        cache=cache_ops.put_many(state.cache, resources),
        index=index_ops.add_query_results(state.index, _collection_query(event), [r["id"] for r in resources]),
        fetching=False,
    )


def _fetch_collection_failed(state: ResourceState, event: Event) -> ResourceState:
    return state.evolve(index=index_ops.set_error(state.index, _collection_query(event)), fetching=False)


# ---------------------------------------------------------------------------
# Notices
# ---------------------------------------------------------------------------


def _included_received(state: ResourceState, event: Event) -> ResourceState:
    return state.evolve(cache=cache_ops.put_many(state.cache, event.payload or []))


def _invalidate(state: ResourceState, event: Event) -> ResourceState:
    return state.evolve(cache={}, index={})


# ---------------------------------------------------------------------------
# Mutations and custom actions
# ---------------------------------------------------------------------------


def _process_initiated(state: ResourceState, event: Event) -> ResourceState:
    name = event.operation.process_name
    return state.evolve(processes=process_ops.update(state.processes, name, event, STATUS_RUNNING))


def _process_failed(state: ResourceState, event: Event) -> ResourceState:
    name = event.operation.process_name
    return state.evolve(processes=process_ops.update(state.processes, name, event, STATUS_ERRORED))


def _create_succeeded(state: ResourceState, event: Event) -> ResourceState:
    processes = process_ops.update(state.processes, "create", event, STATUS_COMPLETED, result=event.payload)
    if event.meta.invalidation:
        return state.evolve(cache={}, index={}, processes=processes)
    # The index is always dropped: the new resource may belong to any cached query
    return state.evolve(cache=cache_ops.put(state.cache, event.payload), index={}, processes=processes)


def _update_succeeded(state: ResourceState, event: Event) -> ResourceState:
    processes = process_ops.update(state.processes, "update", event, STATUS_COMPLETED)
    if event.meta.invalidation:
        return state.evolve(cache={}, index={}, processes=processes)
    return state.evolve(cache=cache_ops.put(state.cache, event.payload), index={}, processes=processes)


def _destroy_succeeded(state: ResourceState, event: Event) -> ResourceState:
    processes = process_ops.update(state.processes, "destroy", event, STATUS_COMPLETED)
    if event.meta.invalidation:
        return state.evolve(cache={}, index={}, processes=processes)
    return state.evolve(
        cache=cache_ops.remove(state.cache, event.payload["id"]),
        index={},
        processes=processes,
    )


def _custom_succeeded(state: ResourceState, event: Event) -> ResourceState:
    name = event.operation.process_name
    processes = process_ops.update(state.processes, name, event, STATUS_COMPLETED, result=event.payload)
    if event.meta.invalidation:
        return state.evolve(cache={}, index={}, processes=processes)
    return state.evolve(processes=processes)


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

_HANDLERS: dict[tuple[OperationKind, Phase], Handler] = {
    (OperationKind.FETCH_INDIVIDUAL, Phase.INITIATED): _fetch_initiated,
    (OperationKind.FETCH_INDIVIDUAL, Phase.SUCCEEDED): _fetch_individual_succeeded,
    (OperationKind.FETCH_INDIVIDUAL, Phase.FAILED): _fetch_individual_failed,
    (OperationKind.FETCH_COLLECTION, Phase.INITIATED): _fetch_initiated,
    (OperationKind.FETCH_COLLECTION, Phase.SUCCEEDED): _fetch_collection_succeeded,
    (OperationKind.FETCH_COLLECTION, Phase.FAILED): _fetch_collection_failed,
    (OperationKind.INCLUDED_RESOURCES_RECEIVED, Phase.NOTICE): _included_received,
    (OperationKind.INVALIDATE_CACHE, Phase.NOTICE): _invalidate,
    (OperationKind.CREATE, Phase.INITIATED): _process_initiated,
    (OperationKind.CREATE, Phase.SUCCEEDED): _create_succeeded,
    (OperationKind.CREATE, Phase.FAILED): _process_failed,
    (OperationKind.UPDATE, Phase.INITIATED): _process_initiated,
    (OperationKind.UPDATE, Phase.SUCCEEDED): _update_succeeded,
    (OperationKind.UPDATE, Phase.FAILED): _process_failed,
    (OperationKind.DESTROY, Phase.INITIATED): _process_initiated,
    (OperationKind.DESTROY, Phase.SUCCEEDED): _destroy_succeeded,
    (OperationKind.DESTROY, Phase.FAILED): _process_failed,
    (OperationKind.CUSTOM, Phase.INITIATED): _process_initiated,
    (OperationKind.CUSTOM, Phase.SUCCEEDED): _custom_succeeded,
    (OperationKind.CUSTOM, Phase.FAILED): _process_failed,
}
