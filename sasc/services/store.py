"""
Store and event bus.

Holds the state of every registered resource type and is the only place
that state changes. dispatch() runs the reducer synchronously, then
publishes the event to subscribers (sagas, helpers, select sessions).

An event dispatched from inside a subscriber is queued and delivered once
the current one has reached every subscriber, so all subscribers observe
events in the same order.

A subscriber that raises is logged and skipped; the others still get the
event.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from sasc.kernel.reducer import empty_state, reduce
from sasc.kernel.types import Event, ResourceState

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


class Store:
    """State of all resource types, keyed by type name."""

    def __init__(self) -> None:
        self._state: dict[str, ResourceState] = {}
        self._listeners: list[Listener] = []
        self._pending: deque[Event] = deque()
        self._dispatching = False
        # Bumped on every state change
        self.version = 0

    @property
    def state(self) -> Mapping[str, ResourceState]:
        return MappingProxyType(self._state)

    def register(self, resource_type: str) -> None:
        """Give a resource type its (empty) state cell. Registering twice is harmless."""
        if resource_type not in self._state:
            self._state = {**self._state, resource_type: empty_state()}

    def is_registered(self, resource_type: str) -> bool:
        return resource_type in self._state

    def select(self, selector: Callable[..., Any], *args: Any) -> Any:
        return selector(self.state, *args)

    # -- dispatch ------------------------------------------------------------

    def dispatch(self, event: Event) -> Event:
        self._pending.append(event)
        if self._dispatching:
            return event

        self._dispatching = True
        try:
            while self._pending:
                self._deliver(self._pending.popleft())
        finally:
            self._dispatching = False
        return event

    def _deliver(self, event: Event) -> None:
        current = self._state.get(event.resource_type)
        if current is not None:
            updated = reduce(current, event)
            if updated is not current:
                self._state = {**self._state, event.resource_type: updated}
                self.version += 1
        else:
            logger.debug("store: %s for unregistered type, not reduced", event.type)

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # A broken subscriber must not stop delivery to the others
                logger.exception("store: listener failed on %s", event.type)

    # -- subscriptions -------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener(event) after every dispatch. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def wait_for(self, predicate: Callable[[Event], bool]) -> asyncio.Future[Event]:
        """
        Future resolved with the first event matching predicate. Subscribes
        immediately, so dispatch the triggering event after calling this.
        """
        future: asyncio.Future[Event] = asyncio.get_running_loop().create_future()

        def listener(event: Event) -> None:
            if not future.done() and predicate(event):
                future.set_result(event)

        unsubscribe = self.subscribe(listener)
        future.add_done_callback(lambda _: unsubscribe())
        return future
