"""
Caller-side adapter.

Runs selectors on behalf of code that just wants values: a miss returns
its placeholder and the request is held until flush(), so reading never
dispatches in the middle of building a result.

    def mapper(select):
        dog = select(dog_selectors.get_one, "82")
        return {"dog": dog, "owners": select(human_selectors.get_many_from_relationship, dog, "owners")}

    unwatch = watch(store, mapper, lambda props, loading: render(props, loading))
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from sasc.kernel.selectors import CacheMiss, is_valid_cache_miss
from sasc.kernel.types import Event
from sasc.services.store import Store

logger = logging.getLogger(__name__)

Select = Callable[..., Any]
Mapper = Callable[..., dict[str, Any]]


class SelectSession:
    """One pass of selector calls against a store, collecting the requests for its misses."""

    def __init__(self, store: Store):
        self.store = store
        self.is_loading = False
        self._requests: list[Event] = []

    @property
    def requests(self) -> list[Event]:
        return list(self._requests)

    def select(self, selector: Callable[..., Any], *args: Any) -> Any:
        try:
            return selector(self.store.state, *args)
        except CacheMiss as exc:
            self._handle_miss(exc)
            return exc.default

    def run(self, mapper: Mapper, *args: Any) -> dict[str, Any]:
        """
        Call mapper(select, *args). A miss raised by the mapper itself (not
        through select) makes the whole result empty.
        """
        try:
            return mapper(self.select, *args)
        except CacheMiss as exc:
            self._handle_miss(exc)
            return {}

    def flush(self) -> int:
        """Dispatch the held requests once each. Returns how many went out."""
        requests, self._requests = self._requests, []
        for request in requests:
            self.store.dispatch(request)
        return len(requests)

    def _handle_miss(self, exc: CacheMiss) -> None:
        if not is_valid_cache_miss(exc):
            raise exc
        self.is_loading = True
        # Several selectors often miss on the same request within one pass
        if exc.request not in self._requests:
            self._requests.append(exc.request)


def watch(
    store: Store,
    mapper: Mapper,
    callback: Callable[[dict[str, Any], bool], None],
) -> Callable[[], None]:
    """
    Run mapper now and again after every state change, passing
    (props, is_loading) to callback and then dispatching whatever was
    missing. Returns a function that stops watching.
    """
    seen = {"version": -1}

    def refresh(_event: Event | None = None) -> None:
        if store.version == seen["version"]:
            return
        seen["version"] = store.version

        session = SelectSession(store)
        props = session.run(mapper)
        callback(props, session.is_loading)
        sent = session.flush()
        if sent:
            logger.debug("adapter: dispatched %d requests", sent)

    unsubscribe = store.subscribe(refresh)
    refresh()
    return unsubscribe
