"""
Tests for sasc/services/helpers.py
"""

from __future__ import annotations

import asyncio

import pytest

from sasc.config import Settings
from sasc.kernel.events import ResourceActions
from sasc.kernel.selectors import CacheMiss
from sasc.kernel.types import DuplicateProcessError, Phase, ProtocolError, ResolutionError
from sasc.models.options import ResourceOptions
from sasc.services.helpers import SequentialQueue, diligent_select, run_resource_process, take_sequentially
from sasc.services.store import Store
from sasc.tests import wire


@pytest.fixture
def quick():
    cfg = Settings()
    cfg.SELECT_MAX_ATTEMPTS = 3
    cfg.SELECT_RETRY_INCREMENT = 0.01
    return cfg


class TestSequentialQueue:
    @pytest.mark.asyncio
    async def test_handles_in_order_one_at_a_time(self):
        dogs = ResourceActions("dogs", ResourceOptions())
        active, order = [], []

        async def handler(event):
            active.append(event)
            assert len(active) == 1
            await asyncio.sleep(0)
            order.append(event.payload["id"])
            active.remove(event)

        queue = SequentialQueue("dogs", handler)
        queue.start()
        for id in ["1", "2", "3"]:
            queue.put(dogs.fetch_individual(id))
        assert queue.pending == 3
        await queue.join()
        await queue.stop()

        assert order == ["1", "2", "3"]
        assert not queue.running

    @pytest.mark.asyncio
    async def test_survives_handler_errors(self, caplog):
        dogs = ResourceActions("dogs", ResourceOptions())
        handled = []

        async def handler(event):
            if event.payload["id"] == "1":
                raise RuntimeError("boom")
            handled.append(event.payload["id"])

        queue = SequentialQueue("dogs", handler)
        queue.start()
        queue.put(dogs.fetch_individual("1"))
        queue.put(dogs.fetch_individual("2"))
        await queue.join()
        await queue.stop()

        assert handled == ["2"]
        assert "dogs worker failed" in caplog.text

    @pytest.mark.asyncio
    async def test_take_sequentially_routes_matching_events(self):
        store = Store()
        dogs = ResourceActions("dogs", ResourceOptions())
        handled = []

        async def handler(event):
            handled.append(event.type)

        queue = take_sequentially(store, lambda e: e.phase is Phase.REQUESTED, handler, "requests")
        store.dispatch(dogs.fetch_collection())
        store.dispatch(dogs.invalidate_cache())
        await queue.join()

        await queue.stop()
        store.dispatch(dogs.fetch_individual("1"))
        await asyncio.sleep(0)

        assert handled == ["RSRC_DOGS_FETCH_COLLECTION"]

    @pytest.mark.asyncio
    async def test_admit_turns_events_away(self):
        store = Store()
        dogs = ResourceActions("dogs", ResourceOptions())
        handled = []

        async def handler(event):
            handled.append(event.payload["id"])

        queue = SequentialQueue("odd", handler)
        queue.listen(store, lambda e: True, admit=lambda e: int(e.payload["id"]) % 2 == 1)
        queue.start()
        for id in range(1, 5):
            store.dispatch(dogs.fetch_individual(id))
        await queue.join()
        await queue.stop()

        assert handled == ["1", "3"]


class TestDiligentSelect:
    @pytest.mark.asyncio
    async def test_returns_hit_without_dispatching(self, running, store, transports):
        store.dispatch(running.actions("dogs").included_resources_received([{"id": "1", "type": "dogs"}]))
        dog = await diligent_select(store, running.selectors("dogs").get_one, "1")
        assert dog["id"] == "1"
        assert transports["dogs"].calls == []

    @pytest.mark.asyncio
    async def test_fetches_until_resolved(self, running, store, transports, quick):
        transports["dogs"].respond("get_collection", {"data": [wire("dogs", "1", breed="corgi")]})
        dog = await diligent_select(store, running.selectors("dogs").get_one_by, "breed", "corgi", settings=quick)
        assert dog["id"] == "1"
        assert transports["dogs"].methods() == ["get_collection"]

    @pytest.mark.asyncio
    async def test_spans_types(self, running, store, transports, quick):
        transports["humans"].respond(
            "get_individual",
            {"data": wire("humans", "9", name="Ada") | {"relationships": {"dog": {"data": {"type": "dogs", "id": "1"}}}}},
        )
        transports["dogs"].respond("get_individual", {"data": wire("dogs", "1", name="Rex")})
        humans, dogs = running.selectors("humans"), running.selectors("dogs")

        def owners_dog(state):
            return dogs.get_one_from_relationship(state, humans.get_one(state, "9"), "dog")

        dog = await diligent_select(store, owners_dog, settings=quick)
        assert dog["name"] == "Rex"

    @pytest.mark.asyncio
    async def test_failed_fetch_resolves_to_default(self, running, store, transports, quick):
        transports["dogs"].respond("get_individual", RuntimeError("404"))
        assert await diligent_select(store, running.selectors("dogs").get_one, "1", settings=quick) is None

    @pytest.mark.asyncio
    async def test_gives_up(self, store, quick):
        dogs = ResourceActions("dogs", ResourceOptions())

        def never(state):
            raise CacheMiss("always missing", dogs.fetch_collection(ignore_cache=True), [])

        with pytest.raises(ResolutionError):
            await diligent_select(store, never, settings=quick)

    @pytest.mark.asyncio
    async def test_invalid_miss_is_raised(self, store, quick):
        def broken(state):
            raise CacheMiss("no request", None)

        with pytest.raises(CacheMiss):
            await diligent_select(store, broken, settings=quick)


class TestRunResourceProcess:
    @pytest.mark.asyncio
    async def test_returns_result(self, running, store, transports):
        transports["dogs"].respond("create", {"data": wire("dogs", "5", name="Balto")})
        created = await run_resource_process(store, running.actions("dogs").create({"type": "dogs", "name": "Balto"}))
        assert created["id"] == "5"

    @pytest.mark.asyncio
    async def test_raises_failure(self, running, store, transports):
        transports["dogs"].respond("destroy", RuntimeError("409"))
        with pytest.raises(RuntimeError, match="409"):
            await run_resource_process(store, running.actions("dogs").destroy("1"))

    @pytest.mark.asyncio
    async def test_rejection_is_raised(self, running, store):
        with pytest.raises(ProtocolError):
            await run_resource_process(store, running.actions("dogs").create({"type": "dogs", "id": "1"}))

    @pytest.mark.asyncio
    async def test_fetch_with_ignore_cache(self, running, store, transports):
        transports["dogs"].respond("get_collection", {"data": [wire("dogs", "1")]})
        dogs = await run_resource_process(store, running.actions("dogs").fetch_collection(ignore_cache=True))
        assert [d["id"] for d in dogs] == ["1"]

    @pytest.mark.asyncio
    async def test_same_pid_callers(self, running, store, transports):
        transport = transports["dogs"]
        transport.gate = asyncio.Event()
        actions = running.actions("dogs")

        first = asyncio.ensure_future(run_resource_process(store, actions.custom("eat-biscuit", id="1", pid="p")))
        await asyncio.sleep(0)
        with pytest.raises(DuplicateProcessError):
            await run_resource_process(store, actions.custom("eat-biscuit", id="2", pid="p"))

        transport.respond("eat-biscuit", {"result": {"full": True}})
        transport.gate.set()
        assert await first == {"full": True}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "make",
        [
            lambda dogs: dogs.fetch_collection(),
            lambda dogs: dogs.invalidate_cache(),
            lambda dogs: dogs.create({"type": "dogs"}).derive(Phase.INITIATED, initiated=True),
            lambda dogs: dogs.create({"type": "dogs"}).derive(Phase.SUCCEEDED, {}, initiated=True),
        ],
    )
    async def test_misuse(self, store, make):
        dogs = ResourceActions("dogs", ResourceOptions(create=True))
        with pytest.raises(ProtocolError):
            await run_resource_process(store, make(dogs))
