"""
SASC Kernel — Selectors

Synchronous accessors over the store state (a mapping of resource type →
ResourceState). A read either returns cached data, returns a default for a
fetch already known to have failed, or reports a miss carrying the request
that would resolve it.

Two faces for every read:
- lookup_*  returns a Lookup: Ready(value), Pending(request, placeholder) or Failed(placeholder)
- get_*     returns the value and raises CacheMiss when Pending, so accessors
            that call other accessors propagate the first miss for free

Callers rarely handle CacheMiss themselves: SelectSession (adapter) and
diligent_select (helpers) catch it and dispatch the request.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sasc.kernel import cache as cache_ops
from sasc.kernel import index as index_ops
from sasc.kernel import processes as process_ops
from sasc.kernel.types import (
    DEFAULT_PID,
    STATUS_COMPLETED,
    STATUS_RUNNING,
    Event,
    Operation,
    OperationKind,
    ProtocolError,
    ResourceState,
)

if TYPE_CHECKING:
    from sasc.kernel.events import ResourceActions
    from sasc.models.options import ResourceOptions

State = Mapping[str, ResourceState]


# ---------------------------------------------------------------------------
# Miss condition and lookup results
# ---------------------------------------------------------------------------


class CacheMiss(Exception):  # noqa: N818
    """
    Raised by an accessor when the data it needs is not cached yet.

    request      an event that, once dispatched, fetches what is missing
    default      a placeholder to show until the fetch resolves
    description  human-readable explanation

    Not a SascError: it is a control signal, and generic error handling
    must never swallow it.
    """

    def __init__(self, description: str, request: Event | None, default: Any = None) -> None:
        super().__init__(description)
        self.description = description
        self.request = request
        self.default = default

    def as_lookup(self) -> Pending:
        return Pending(request=self.request, placeholder=self.default, description=self.description)


@dataclass(frozen=True)
class Ready:
    value: Any

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Pending:
    request: Event | None
    placeholder: Any = None
    description: str = ""

    def unwrap(self) -> Any:
        raise CacheMiss(self.description, self.request, self.placeholder)


@dataclass(frozen=True)
class Failed:
    """A fetch for this data already failed. Not requested again until invalidated."""

    placeholder: Any = None

    def unwrap(self) -> Any:
        return self.placeholder


Lookup = Ready | Pending | Failed


def lookup(selector: Callable[..., Any], state: State, *args: Any) -> Lookup:
    """Run any accessor and capture its outcome as a Lookup."""
    try:
        value = selector(state, *args)
    except CacheMiss as exc:
        if not is_valid_cache_miss(exc):
            raise
        return exc.as_lookup()
    if isinstance(value, Ready | Pending | Failed):
        return value
    return Ready(value)


def first_unready(*lookups: Lookup) -> Lookup | None:
    """The first lookup that isn't Ready, or None when all of them are."""
    for result in lookups:
        if not isinstance(result, Ready):
            return result
    return None


def combine(fn: Callable[..., Any], *lookups: Lookup) -> Lookup:
    """Apply fn to the values of Ready lookups; otherwise thread the first unready one through."""
    unready = first_unready(*lookups)
    if unready is not None:
        return unready
    return Ready(fn(*(result.value for result in lookups)))


def is_valid_cache_miss(exc: BaseException) -> bool:
    return isinstance(exc, CacheMiss) and exc.request is not None


def cache_miss_override_default(default: Any, fn: Callable[[], Any]) -> Any:
    """
    Call fn; if it raises a CacheMiss, re-raise it with `default` as the
    placeholder. A callable default is invoked to build the value, so each
    miss gets a fresh one.

        biggest = cache_miss_override_default(None, lambda: dogs.get_many(state))
    """
    try:
        return fn()
    except CacheMiss as exc:
        if not is_valid_cache_miss(exc):
            raise
        if callable(default):
            default = default()
        raise CacheMiss(exc.description, exc.request, default) from None


def selector_with_default(default: Any, selector: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap a selector so any miss it raises carries `default`."""

    def wrapped(*args: Any, **kwargs: Any) -> Any:
        return cache_miss_override_default(default, lambda: selector(*args, **kwargs))

    wrapped.__name__ = getattr(selector, "__name__", "selector")
    wrapped.__doc__ = selector.__doc__
    return wrapped


# ---------------------------------------------------------------------------
# Per-type selectors
# ---------------------------------------------------------------------------


def _many_default() -> list[Any]:
    return []


ONE_DEFAULT = None


class ResourceSelectors:
    """Accessors for one resource type, bound to that type's request creators."""

    def __init__(self, resource_type: str, actions: ResourceActions, options: ResourceOptions) -> None:
        self.resource_type = resource_type
        self.actions = actions
        self.options = options

    def resource_state(self, state: State | None) -> ResourceState:
        found = (state or {}).get(self.resource_type)
        return found if found is not None else ResourceState()

    # -- reads -------------------------------------------------------------

    def lookup_many(self, state: State, filters: Mapping[str, Any] | None = None) -> Lookup:
        """
        Resources matching a collection query, in server order.

        A pure id filter, {"id": [...]}, is answered from the cache and only
        the ids that are neither cached nor errored get requested.
        """
        filters = dict(filters or {})
        res = self.resource_state(state)
        query: dict[str, Any] = {"filters": filters} if filters else {}
        request_filters = filters

        ids_only = filters.get("id") is not None and len(filters) == 1
        if ids_only:
            raw = filters["id"]
            ids: list[str] | None = [str(i) for i in (raw if isinstance(raw, list | tuple) else [raw])]
        else:
            ids = index_ops.get_results(res.index, query) if not index_ops.is_errored(res.index, query) else None

        if ids is not None:
            hits, missing, errored = cache_ops.lookup(res.cache, ids)
            # Never retry what already failed
            if errored:
                return Failed(_many_default())
            if not missing:
                return Ready(hits)
            if ids_only:
                request_filters = {"id": missing}
                query = {"filters": request_filters}

        if index_ops.is_errored(res.index, query):
            return Failed(_many_default())

        return Pending(
            request=self.actions.fetch_collection(request_filters),
            placeholder=_many_default(),
            description=f"get_many ({self.resource_type}): value is not cached and must be fetched",
        )

    def lookup_one(self, state: State, id: Any) -> Lookup:
        return self.lookup_one_by(state, "id", id)

    def lookup_one_by(self, state: State, attribute: str, value: Any) -> Lookup:
        """
        A single resource by attribute value. Use unique attributes: with
        several matches any one of them may come back.
        """
        res = self.resource_state(state)
        found = cache_ops.get_by(res.cache, attribute, value)
        if found is not None:
            return Ready(found)

        description = f"get_one_by ({self.resource_type}, {attribute}:{value}): value is not cached and must be fetched"

        if attribute == "id":
            if cache_ops.is_errored(res.cache, value):
                return Failed(ONE_DEFAULT)
            return Pending(self.actions.fetch_individual(value), ONE_DEFAULT, description)

        # Non-id attributes can only be searched once the whole collection is cached
        if index_ops.is_known(res.index, {}):
            return Ready(ONE_DEFAULT)
        return Pending(self.actions.fetch_collection(), ONE_DEFAULT, description)

    def lookup_many_from_relationship(self, state: State, origin: Mapping[str, Any] | None, relationship: str) -> Lookup:
        if not origin:
            return Ready(_many_default())
        data = _relationship_data(origin, relationship)
        refs = data if isinstance(data, list) else [data]
        ids = [ref["id"] for ref in refs if ref and ref.get("type") == self.resource_type]
        if not ids:
            return Ready(_many_default())
        return self.lookup_many(state, {"id": ids})

    def lookup_one_from_relationship(self, state: State, origin: Mapping[str, Any] | None, relationship: str) -> Lookup:
        data = _relationship_data(origin, relationship)
        if isinstance(data, Mapping) and data.get("type") == self.resource_type:
            return self.lookup_one_by(state, "id", data.get("id"))
        return Ready(ONE_DEFAULT)

    def get_many(self, state: State, filters: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        return self.lookup_many(state, filters).unwrap()

    def get_one(self, state: State, id: Any) -> dict[str, Any] | None:
        return self.lookup_one(state, id).unwrap()

    def get_one_by(self, state: State, attribute: str, value: Any) -> dict[str, Any] | None:
        return self.lookup_one_by(state, attribute, value).unwrap()

    def get_many_from_relationship(
        self, state: State, origin: Mapping[str, Any] | None, relationship: str
    ) -> list[dict[str, Any]]:
        return self.lookup_many_from_relationship(state, origin, relationship).unwrap()

    def get_one_from_relationship(
        self, state: State, origin: Mapping[str, Any] | None, relationship: str
    ) -> dict[str, Any] | None:
        return self.lookup_one_from_relationship(state, origin, relationship).unwrap()

    # -- cache introspection -------------------------------------------------
    # Mostly for the sagas; application code is better off with the reads above.

    def is_resource_known(self, state: State, id: Any) -> bool:
        """Known includes errored: the error result is cached too."""
        return cache_ops.is_known(self.resource_state(state).cache, id)

    def is_resource_errored(self, state: State, id: Any) -> bool:
        return cache_ops.is_errored(self.resource_state(state).cache, id)

    def is_collection_known(self, state: State, filters: Mapping[str, Any] | None = None) -> bool:
        res = self.resource_state(state)
        query = {"filters": dict(filters or {})}

        if not index_ops.is_known(res.index, query):
            return False
        if index_ops.is_errored(res.index, query):
            return True

        ids = index_ops.get_results(res.index, query)
        if not ids:
            return True
        _, missing, errored = cache_ops.lookup(res.cache, ids)
        return bool(errored) or not missing

    def is_collection_errored(self, state: State, filters: Mapping[str, Any] | None = None) -> bool:
        res = self.resource_state(state)
        query = {"filters": dict(filters or {})}

        if index_ops.is_errored(res.index, query):
            return True
        ids = index_ops.get_results(res.index, query)
        if ids is None:
            return False
        return any(cache_ops.is_errored(res.cache, i) for i in ids)

    def is_fetching(self, state: State) -> bool:
        return self.resource_state(state).fetching

    # -- process introspection -----------------------------------------------

    def get_process_status(self, state: State, name: str, pid: str = DEFAULT_PID) -> str:
        return process_ops.get_status(self.resource_state(state).processes, name, pid)

    def is_process_running(self, state: State, name: str, pid: str = DEFAULT_PID) -> bool:
        return self.get_process_status(state, name, pid) == STATUS_RUNNING

    def is_process_done(self, state: State, name: str, pid: str = DEFAULT_PID) -> bool:
        return self.get_process_status(state, name, pid) == STATUS_COMPLETED

    def get_process_result(self, state: State, name: str, pid: str = DEFAULT_PID) -> Any:
        return process_ops.get_result(self.resource_state(state).processes, name, pid)

    def get_creation_status(self, state: State, pid: str = DEFAULT_PID) -> str:
        return self.get_process_status(state, self._enabled(OperationKind.CREATE), pid)

    def is_creating(self, state: State, pid: str = DEFAULT_PID) -> bool:
        return self.is_process_running(state, self._enabled(OperationKind.CREATE), pid)

    def is_done_creating(self, state: State, pid: str = DEFAULT_PID) -> bool:
        return self.is_process_done(state, self._enabled(OperationKind.CREATE), pid)

    def get_creation_result(self, state: State, pid: str = DEFAULT_PID) -> Any:
        return self.get_process_result(state, self._enabled(OperationKind.CREATE), pid)

    def get_update_status(self, state: State, pid: str = DEFAULT_PID) -> str:
        return self.get_process_status(state, self._enabled(OperationKind.UPDATE), pid)

    def is_updating(self, state: State, pid: str = DEFAULT_PID) -> bool:
        return self.is_process_running(state, self._enabled(OperationKind.UPDATE), pid)

    def is_done_updating(self, state: State, pid: str = DEFAULT_PID) -> bool:
        return self.is_process_done(state, self._enabled(OperationKind.UPDATE), pid)

    def get_destroy_status(self, state: State, pid: str = DEFAULT_PID) -> str:
        return self.get_process_status(state, self._enabled(OperationKind.DESTROY), pid)

    def is_destroying(self, state: State, pid: str = DEFAULT_PID) -> bool:
        return self.is_process_running(state, self._enabled(OperationKind.DESTROY), pid)

    def is_done_destroying(self, state: State, pid: str = DEFAULT_PID) -> bool:
        return self.is_process_done(state, self._enabled(OperationKind.DESTROY), pid)

    def custom(self, name: str) -> CustomActionSelectors:
        """Process selectors for a custom action, e.g. custom("run-iditarod").is_running(state)."""
        operation = Operation(OperationKind.CUSTOM, name)
        if not self.options.supports(operation):
            raise ProtocolError(f"'{self.resource_type}' has no custom action '{name}'")
        return CustomActionSelectors(self, operation.process_name)

    def _enabled(self, kind: OperationKind) -> str:
        operation = Operation(kind)
        if not self.options.supports(operation):
            raise ProtocolError(f"'{self.resource_type}' does not support {kind.value}")
        return operation.process_name


class CustomActionSelectors:
    """Process selectors bound to one custom action's process name."""

    def __init__(self, selectors: ResourceSelectors, process_name: str) -> None:
        self._selectors = selectors
        self.process_name = process_name

    def status(self, state: State, pid: str = DEFAULT_PID) -> str:
        return self._selectors.get_process_status(state, self.process_name, pid)

    def result(self, state: State, pid: str = DEFAULT_PID) -> Any:
        return self._selectors.get_process_result(state, self.process_name, pid)

    def is_running(self, state: State, pid: str = DEFAULT_PID) -> bool:
        return self._selectors.is_process_running(state, self.process_name, pid)

    def is_done(self, state: State, pid: str = DEFAULT_PID) -> bool:
        return self._selectors.is_process_done(state, self.process_name, pid)


def _relationship_data(origin: Mapping[str, Any] | None, relationship: str) -> Any:
    relationships = (origin or {}).get("relationships") or {}
    return (relationships.get(relationship) or {}).get("data")
