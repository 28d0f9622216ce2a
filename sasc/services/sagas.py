"""
Orchestrator for one resource type.

One queue per enabled operation (fetch_collection, fetch_individual,
create, update, destroy, each custom action), each drained by a single
worker. A queue handles its requests strictly in dispatch order; different
queues run concurrently on the same loop.

Lifecycle of one request:
    REQUESTED → INITIATED → SUCCEEDED | FAILED
Fetches that are already satisfied by the cache end at REQUESTED with no
further events. Mutations rejected before any network call (a pid
collision, a malformed payload) go straight to FAILED without INITIATED,
so the process tracker of a run that is really going is left untouched.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from sasc.kernel.types import (
    DuplicateProcessError,
    Event,
    Operation,
    OperationKind,
    Phase,
    ProtocolError,
)
from sasc.kernel.wire import pack, unpack, unpack_many
from sasc.services.helpers import SequentialQueue, take_sequentially

if TYPE_CHECKING:
    from sasc.kernel.events import ResourceActions
    from sasc.kernel.selectors import ResourceSelectors
    from sasc.models.options import ResourceOptions
    from sasc.services.http_client import ResourceTransport
    from sasc.services.registry import ResourceDefinitions
    from sasc.services.store import Store

logger = logging.getLogger(__name__)

Handler = Callable[[Event], Awaitable[None]]


class ResourceSagas:
    """Workers that turn request events for one resource type into transport calls."""

    def __init__(
        self,
        definitions: ResourceDefinitions,
        resource_type: str,
        client: ResourceTransport,
        actions: ResourceActions,
        selectors: ResourceSelectors,
        options: ResourceOptions,
    ):
        self.definitions = definitions
        self.resource_type = resource_type
        self.client = client
        self.actions = actions
        self.selectors = selectors
        self.options = options
        self.store: Store | None = None
        self.queues: dict[Operation, SequentialQueue] = {}
        # (process name, pid) pairs queued or running
        self._claimed: set[tuple[str, str]] = set()

    # -- wiring --------------------------------------------------------------

    def start(self, store: Store) -> None:
        """Start one worker per enabled operation. Call inside a running loop."""
        if self.store is not None:
            return
        self.store = store

        for operation in self.options.operations():
            name = f"{self.resource_type}:{operation.process_name}"
            handler = self._handler_for(operation)
            if operation.is_fetch:
                self.queues[operation] = take_sequentially(store, _requests_for(self.resource_type, operation), handler, name)
                continue

            queue = SequentialQueue(name, self._release_after(handler))
            queue.listen(store, _requests_for(self.resource_type, operation), admit=self._claim)
            queue.start()
            self.queues[operation] = queue

        logger.debug("sagas: started %d workers for %s", len(self.queues), self.resource_type)

    async def stop(self) -> None:
        for queue in self.queues.values():
            await queue.stop()
        self.queues = {}
        self._claimed.clear()
        self.store = None

    async def join(self) -> None:
        """Wait until every queue is drained. Mostly for tests."""
        for queue in list(self.queues.values()):
            await queue.join()

    def _handler_for(self, operation: Operation) -> Handler:
        handlers: dict[OperationKind, Handler] = {
            OperationKind.FETCH_COLLECTION: self.fetch_collection,
            OperationKind.FETCH_INDIVIDUAL: self.fetch_individual,
            OperationKind.CREATE: self.create,
            OperationKind.UPDATE: self.update,
            OperationKind.DESTROY: self.destroy,
            OperationKind.CUSTOM: self.custom_action,
        }
        return handlers[operation.kind]

    # -- pid bookkeeping -----------------------------------------------------

    def _claim(self, request: Event) -> bool:
        """Admit a mutation request unless its (operation, pid) is already queued or running."""
        key = (request.operation.process_name, request.pid)
        if key in self._claimed or self.selectors.is_process_running(self._state, *key):
            self._reject(request, DuplicateProcessError(*key))
            return False
        self._claimed.add(key)
        return True

    def _release_after(self, handler: Handler) -> Handler:
        async def run(request: Event) -> None:
            key = (request.operation.process_name, request.pid)
            try:
                if self.selectors.is_process_running(self._state, *key):
                    self._reject(request, DuplicateProcessError(*key))
                    return
                await handler(request)
            finally:
                self._claimed.discard(key)

        return run

    # -- fetches -------------------------------------------------------------

    async def fetch_collection(self, request: Event) -> None:
        payload = request.payload or {}
        filters = payload.get("filters") or {}

        if not payload.get("ignore_cache"):
            if self.selectors.is_fetching(self._state):
                logger.debug("sagas: %s skipped, %s already fetching", request.type, self.resource_type)
                return
            if self.selectors.is_collection_known(self._state, filters):
                logger.debug("sagas: %s skipped, collection known", request.type)
                return

        with self._initiated(request) as flight:
            try:
                response = await self.client.get_collection(filters)
                resources = unpack_many(response.get("data"))
            except Exception as exc:
                flight.fail(exc)
                return

            self._receive_included(response.get("included"))
            flight.succeed(resources)
        for resource in resources:
            self._dispatch(self.actions.resource_fetched(resource))

    async def fetch_individual(self, request: Event) -> None:
        payload = request.payload or {}
        resource_id = payload.get("id")

        if not payload.get("ignore_cache"):
            if self.selectors.is_fetching(self._state):
                logger.debug("sagas: %s skipped, %s already fetching", request.type, self.resource_type)
                return
            if self.selectors.is_resource_known(self._state, resource_id):
                logger.debug("sagas: %s skipped, %s/%s known", request.type, self.resource_type, resource_id)
                return

        with self._initiated(request) as flight:
            try:
                response = await self.client.get_individual(resource_id)
                resource = unpack(response.get("data"))
            except Exception as exc:
                flight.fail(exc)
                return

            self._receive_included(response.get("included"))
            flight.succeed(resource)
        self._dispatch(self.actions.resource_fetched(resource))

    # -- mutations -----------------------------------------------------------

    async def create(self, request: Event) -> None:
        payload = request.payload or {}
        if payload.get("id"):
            self._reject(request, ProtocolError("Cannot specify id in resource creation payload"))
            return

        await self._mutate(
            request,
            lambda: self.client.create(pack(payload)),
            result=lambda response: unpack(response.get("data")),
            invalidation=lambda _: self.options.mutations_invalidate,
            dependents=True,
        )

    async def update(self, request: Event) -> None:
        payload = request.payload or {}
        await self._mutate(
            request,
            lambda: self.client.update(pack(payload)),
            result=lambda response: unpack(response.get("data")),
            invalidation=lambda _: self.options.mutations_invalidate,
            dependents=True,
        )

    async def destroy(self, request: Event) -> None:
        resource_id = (request.payload or {}).get("id")
        if not resource_id:
            self._reject(request, ProtocolError("Need id parameter in payload for resource destroy"))
            return

        await self._mutate(
            request,
            lambda: self.client.destroy(resource_id),
            # The response body should be empty
            result=lambda _: {"id": resource_id},
            invalidation=lambda _: self.options.mutations_invalidate,
            dependents=True,
        )

    async def custom_action(self, request: Event) -> None:
        name = request.operation.name or ""
        config = self.options.custom_actions[name]
        payload = request.payload or {}
        resource_id = payload.get("id")

        if config.kind == "individual" and not resource_id:
            self._reject(request, ProtocolError("Id is required for individual custom actions"))
            return

        await self._mutate(
            request,
            lambda: self.client.custom_action(name, resource_id, payload.get("arguments") or {}),
            result=lambda response: response.get("result", {}),
            invalidation=config.should_invalidate,
            invalidate_on_fail=config.invalidate_on_fail,
        )

    async def _mutate(
        self,
        request: Event,
        call: Callable[[], Awaitable[dict[str, Any]]],
        *,
        result: Callable[[dict[str, Any]], Any],
        invalidation: Callable[[Any], bool],
        invalidate_on_fail: bool = False,
        dependents: bool = False,
    ) -> None:
        """
        Run a mutation once admitted.

        Built-in mutations (dependents=True) always invalidate the dependent
        types; invalidation decides whether the type's own store is cleared.
        Custom actions invalidate both or neither.
        """
        logger.info("sagas: %s started (pid %s)", request.type, request.pid)
        with self._initiated(request) as flight:
            try:
                response = await call()
                value = result(response)
            except Exception as exc:
                if invalidate_on_fail:
                    self._emit_invalidations()
                flight.fail(exc)
                return

            invalidate = bool(invalidation(value))
            if invalidate or dependents:
                self._emit_invalidations()
            self._receive_included(response.get("included"))
            flight.succeed(value, invalidation=invalidate)
        logger.info("sagas: %s succeeded (pid %s)", request.type, request.pid)

    # -- cross-type effects --------------------------------------------------

    def _emit_invalidations(self) -> None:
        for resource_type, enabled in self.options.invalidates_cached_types.items():
            if not enabled:
                continue
            if not self.definitions.is_defined(resource_type):
                logger.warning("sagas: %s invalidates undefined type %s", self.resource_type, resource_type)
                continue
            self._dispatch(self.definitions.actions(resource_type).invalidate_cache())

    def _receive_included(self, included: Mapping[str, Any] | None) -> None:
        """Write included resources through to their own types. Types nobody defined are skipped."""
        if not included:
            return
        try:
            for resource_type, items in included.items():
                if not self.definitions.is_defined(resource_type):
                    logger.debug("sagas: skipping included resources of undefined type %s", resource_type)
                    continue
                actions = self.definitions.actions(resource_type)
                self._dispatch(actions.included_resources_received(unpack_many(items)))
        except Exception as exc:
            logger.exception("sagas: included resources for %s failed", self.resource_type)
            self._dispatch(self.actions.included_resources_failed(exc))

    # -- internals -----------------------------------------------------------

    @property
    def _state(self) -> Mapping[str, Any]:
        if self.store is None:
            raise ProtocolError(f"Sagas for '{self.resource_type}' are not started")
        return self.store.state

    def _dispatch(self, event: Event) -> None:
        if self.store is None:
            raise ProtocolError(f"Sagas for '{self.resource_type}' are not started")
        self.store.dispatch(event)

    @contextlib.contextmanager
    def _initiated(self, request: Event) -> Iterator[_Flight]:
        """
        Dispatch INITIATED for request and yield its flight. Anything that
        escapes the block before the flight settles, stop() cancelling the
        worker included, ends the request with FAILED so `fetching` and the
        process tracker never stay stuck.
        """
        self._dispatch(request.derive(Phase.INITIATED, initiated=True))
        flight = _Flight(self, request)
        try:
            yield flight
        except BaseException as exc:
            if not flight.settled:
                reason = exc if isinstance(exc, Exception) else ProtocolError(f"{request.type} was cancelled")
                flight.fail(reason)
            raise

    def _reject(self, request: Event, exc: Exception) -> None:
        """Fail a request before any network call. Not initiated, so process entries stay as they are."""
        logger.warning("sagas: %s rejected: %s", request.type, exc)
        self._dispatch(request.derive(Phase.FAILED, exc, error=True))

    def _fail(self, request: Event, exc: Exception) -> None:
        logger.warning("sagas: %s failed: %s", request.type, exc)
        self._dispatch(request.derive(Phase.FAILED, exc, initiated=True, error=True))


class _Flight:
    """An initiated request. Settles once, with SUCCEEDED or FAILED."""

    def __init__(self, sagas: ResourceSagas, request: Event) -> None:
        self.sagas = sagas
        self.request = request
        self.settled = False

    def succeed(self, value: Any, **meta: Any) -> None:
        self.settled = True
        self.sagas._dispatch(self.request.derive(Phase.SUCCEEDED, value, initiated=True, **meta))

    def fail(self, exc: Exception) -> None:
        self.settled = True
        self.sagas._fail(self.request, exc)


def _requests_for(resource_type: str, operation: Operation) -> Callable[[Event], bool]:
    def matches(event: Event) -> bool:
        return (
            event.phase is Phase.REQUESTED
            and event.resource_type == resource_type
            and event.operation == operation
        )

    return matches
