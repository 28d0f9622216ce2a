"""
SASC Kernel — Event Construction

Request creators for one resource type. These are what application code
dispatches to start a fetch, a mutation or a custom action, and what
selectors embed in a CacheMiss.

Resources in payloads are unpacked: {"type": "dogs", "name": "Rex"}, not
{"type": "dogs", "attributes": {"name": "Rex"}}.

Pids: mutations and custom actions accept a `pid`, a string scoping one
logical run. No more than one process per (operation, pid) runs at a time.
When omitted, DEFAULT_PID is used.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from sasc.kernel.types import Event, EventMeta, Operation, OperationKind, Phase, ProtocolError

if TYPE_CHECKING:
    from sasc.models.options import ResourceOptions


class ResourceActions:
    """Event creators for one resource type. Only enabled operations can be built."""

    def __init__(self, resource_type: str, options: ResourceOptions) -> None:
        self.resource_type = resource_type
        self.options = options

    # -- fetches -----------------------------------------------------------

    def fetch_collection(self, filters: Mapping[str, Any] | None = None, *, ignore_cache: bool = False) -> Event:
        """
        Request resources from the index route.

        Prefer selectors over dispatching this yourself, so cached results
        are not requested again. ignore_cache forces the request through.
        """
        payload: dict[str, Any] = {"filters": dict(filters or {})}
        if ignore_cache:
            payload["ignore_cache"] = True
        return self._request(Operation(OperationKind.FETCH_COLLECTION), payload)

    def fetch_individual(self, id: Any, *, ignore_cache: bool = False) -> Event:
        payload: dict[str, Any] = {"id": None if id is None else str(id)}
        if ignore_cache:
            payload["ignore_cache"] = True
        return self._request(Operation(OperationKind.FETCH_INDIVIDUAL), payload)

    # -- mutations ---------------------------------------------------------

    def create(self, payload: Mapping[str, Any], *, pid: str | None = None) -> Event:
        """Create a resource. The payload must have a type and must not have an id."""
        if payload.get("id"):
            raise ProtocolError("Cannot specify id in resource creation payload")
        return self._request(Operation(OperationKind.CREATE), dict(payload), pid=pid)

    def update(self, payload: Mapping[str, Any], *, pid: str | None = None) -> Event:
        """Update a resource. The payload must have type and id; unspecified fields keep their value."""
        return self._request(Operation(OperationKind.UPDATE), dict(payload), pid=pid)

    def destroy(self, id: Any, *, pid: str | None = None) -> Event:
        if not id:
            raise ProtocolError("Need id parameter in payload for resource destroy")
        return self._request(Operation(OperationKind.DESTROY), {"id": id}, pid=pid)

    def custom(
        self,
        name: str,
        *,
        id: Any = None,
        arguments: Mapping[str, Any] | None = None,
        pid: str | None = None,
    ) -> Event:
        """
        Run a custom server action, e.g. custom("run-iditarod", arguments={"route": "northern"}).
        Individual actions need the target id.
        """
        operation = Operation(OperationKind.CUSTOM, name)
        config = self.options.custom_actions.get(name)
        if config is not None and config.kind == "individual" and not id:
            raise ProtocolError(f"Id is required for individual custom action {name}")
        payload: dict[str, Any] = {"arguments": dict(arguments or {})}
        if id is not None:
            payload["id"] = id
        return self._request(operation, payload, pid=pid)

    # -- notices -----------------------------------------------------------

    def invalidate_cache(self) -> Event:
        return self._notice(OperationKind.INVALIDATE_CACHE)

    def included_resources_received(self, resources: list[dict[str, Any]]) -> Event:
        return self._notice(OperationKind.INCLUDED_RESOURCES_RECEIVED, resources)

    def included_resources_failed(self, exc: Exception) -> Event:
        return Event(
            resource_type=self.resource_type,
            operation=Operation(OperationKind.INCLUDED_RESOURCES_FAILED),
            phase=Phase.NOTICE,
            payload=exc,
            error=True,
        )

    def resource_fetched(self, resource: dict[str, Any]) -> Event:
        """Dispatched once per resource received from the server."""
        return self._notice(OperationKind.RESOURCE_FETCHED, resource)

    # -- internals ---------------------------------------------------------

    def _request(self, operation: Operation, payload: dict[str, Any], pid: str | None = None) -> Event:
        if not self.options.supports(operation):
            label = operation.name or operation.kind.value
            raise ProtocolError(f"'{self.resource_type}' does not support {label}")
        return Event(
            resource_type=self.resource_type,
            operation=operation,
            phase=Phase.REQUESTED,
            payload=payload,
            meta=EventMeta(pid=pid),
        )

    def _notice(self, kind: OperationKind, payload: Any = None) -> Event:
        return Event(
            resource_type=self.resource_type,
            operation=Operation(kind),
            phase=Phase.NOTICE,
            payload=payload,
        )
