"""
Effect helpers for code running on the event loop.

- SequentialQueue / take_sequentially: FIFO buffer drained by one worker task
- diligent_select: run a selector, fetching whatever it misses, until it resolves
- run_resource_process: dispatch one request and await its terminal event
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sasc.config import Settings
from sasc.config import settings as default_settings
from sasc.kernel.selectors import CacheMiss, is_valid_cache_miss
from sasc.kernel.types import TERMINAL_PHASES, Event, Phase, ProtocolError, ResolutionError
from sasc.services.store import Store

logger = logging.getLogger(__name__)

Handler = Callable[[Event], Awaitable[None]]


class SequentialQueue:
    """
    Unbounded FIFO of events handled one at a time by a single long-lived
    worker. Events put while the worker is busy wait their turn.
    """

    def __init__(self, name: str, handler: Handler) -> None:
        self.name = name
        self._handler = handler
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.get_running_loop().create_task(self._run(), name=f"sasc:{self.name}")

    def put(self, event: Event) -> None:
        self._queue.put_nowait(event)

    def listen(
        self,
        store: Store,
        predicate: Callable[[Event], bool],
        admit: Callable[[Event], bool] | None = None,
    ) -> None:
        """
        Enqueue every dispatched event matching predicate. When given, admit
        runs synchronously at dispatch time and can turn an event away.
        """

        def listener(event: Event) -> None:
            if not predicate(event):
                return
            if admit is None or admit(event):
                self.put(event)

        self._unsubscribe = store.subscribe(listener)

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._worker is None:
            return
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._handler(event)
            except Exception:
                # Keep draining: one broken handler call must not stall the queue
                logger.exception("helpers: %s worker failed on %s", self.name, event.type)
            finally:
                self._queue.task_done()


def take_sequentially(
    store: Store,
    predicate: Callable[[Event], bool],
    handler: Handler,
    name: str = "queue",
) -> SequentialQueue:
    """Route matching events into a started SequentialQueue. Call inside a running loop."""
    queue = SequentialQueue(name, handler)
    queue.listen(store, predicate)
    queue.start()
    return queue


async def diligent_select(
    store: Store,
    selector: Callable[..., Any],
    *args: Any,
    settings: Settings | None = None,
) -> Any:
    """
    Like store.select, but fetches missing resources until the selector
    stops missing.

    On each CacheMiss the embedded request is dispatched and we wait for its
    success or failure event, or a timeout growing with every attempt. A
    selector may miss several times in a row when it reads several types.

        dog = await diligent_select(store, dogs.get_one_by, "breed", "Welsh Corgi")
    """
    cfg = settings or default_settings

    for attempt in range(cfg.SELECT_MAX_ATTEMPTS):
        try:
            return store.select(selector, *args)
        except CacheMiss as exc:
            if not is_valid_cache_miss(exc):
                raise
            request = exc.request

        terminal = store.wait_for(lambda e, r=request: _same_operation(e, r) and e.phase in TERMINAL_PHASES)
        store.dispatch(request)
        try:
            await asyncio.wait_for(terminal, timeout=(attempt + 1) * cfg.SELECT_RETRY_INCREMENT)
        except TimeoutError:
            logger.debug("helpers: %s not settled after attempt %d", request.type, attempt + 1)

    raise ResolutionError("Unable to resolve selector in a reasonable number of attempts")


async def run_resource_process(store: Store, request: Event) -> Any:
    """
    Dispatch a request and wait for that run to finish.

    Returns the success payload (the created resource, a custom action's
    result...) and raises the exception carried by the failure event.
    Fetch requests need ignore_cache=True, otherwise a cached value would
    make them finish without any event; use diligent_select for those.
    """
    if request.phase is Phase.INITIATED:
        raise ProtocolError("Use e.g. actions.create(), not an initiated event")
    if request.phase is not Phase.REQUESTED or request.operation.is_notice:
        raise ProtocolError("Invalid process event, use e.g. actions.create()")
    if request.operation.is_fetch and not (request.payload or {}).get("ignore_cache"):
        raise ProtocolError("Fetch requests must have ignore_cache to use run_resource_process")

    pid = request.pid

    def finishes(event: Event) -> bool:
        if event.phase not in TERMINAL_PHASES or not _same_operation(event, request):
            return False
        if request.operation.is_fetch:
            return event.meta.original is request
        # Rejections of other callers' requests under the same pid are not ours
        return event.pid == pid and (event.meta.initiated or event.meta.original is request)

    # Subscribe before dispatching so a run that settles synchronously isn't missed
    terminal = store.wait_for(finishes)
    store.dispatch(request)
    event = await terminal

    if event.phase is Phase.FAILED:
        raise event.payload
    return event.payload


def _same_operation(event: Event, request: Event) -> bool:
    return event.resource_type == request.resource_type and event.operation == request.operation
