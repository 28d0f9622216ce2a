"""
Tests for sasc/services/store.py
"""

from __future__ import annotations

import asyncio

import pytest

from sasc.kernel import cache
from sasc.kernel.events import ResourceActions
from sasc.kernel.types import OperationKind, Phase
from sasc.models.options import ResourceOptions
from sasc.services.store import Store

REX = {"id": "1", "type": "dogs", "name": "Rex"}


@pytest.fixture
def dogs():
    return ResourceActions("dogs", ResourceOptions())


@pytest.fixture
def store():
    s = Store()
    s.register("dogs")
    return s


class TestDispatch:
    def test_reduces_registered_type(self, store, dogs):
        store.dispatch(dogs.included_resources_received([REX]))
        assert cache.get_by_id(store.state["dogs"].cache, "1") == REX

    def test_unregistered_type_is_delivered_not_reduced(self, store):
        cats = ResourceActions("cats", ResourceOptions())
        seen = []
        store.subscribe(seen.append)
        store.dispatch(cats.included_resources_received([{"id": "1", "type": "cats"}]))
        assert "cats" not in store.state
        assert len(seen) == 1

    def test_version_bumps_only_on_change(self, store, dogs):
        before = store.version
        store.dispatch(dogs.fetch_collection())
        assert store.version == before
        store.dispatch(dogs.included_resources_received([REX]))
        assert store.version == before + 1

    def test_state_snapshot_is_stable(self, store, dogs):
        snapshot = store.state
        store.dispatch(dogs.included_resources_received([REX]))
        assert snapshot["dogs"].cache == {}

    def test_state_is_read_only(self, store):
        with pytest.raises(TypeError):
            store.state["dogs"] = None

    def test_register_twice_keeps_state(self, store, dogs):
        store.dispatch(dogs.included_resources_received([REX]))
        store.register("dogs")
        assert cache.is_known(store.state["dogs"].cache, "1")

    def test_select(self, store, dogs):
        store.dispatch(dogs.included_resources_received([REX]))
        assert store.select(lambda state, id: cache.get_by_id(state["dogs"].cache, id), "1") == REX


class TestSubscriptions:
    def test_unsubscribe(self, store, dogs):
        seen = []
        unsubscribe = store.subscribe(seen.append)
        store.dispatch(dogs.invalidate_cache())
        unsubscribe()
        store.dispatch(dogs.invalidate_cache())
        assert len(seen) == 1

    def test_nested_dispatch_is_queued(self, store, dogs):
        order = []

        def first(event):
            order.append(("first", event.operation.kind))
            if event.operation.kind is OperationKind.FETCH_COLLECTION:
                store.dispatch(dogs.invalidate_cache())

        def second(event):
            order.append(("second", event.operation.kind))

        store.subscribe(first)
        store.subscribe(second)
        store.dispatch(dogs.fetch_collection())

        assert order == [
            ("first", OperationKind.FETCH_COLLECTION),
            ("second", OperationKind.FETCH_COLLECTION),
            ("first", OperationKind.INVALIDATE_CACHE),
            ("second", OperationKind.INVALIDATE_CACHE),
        ]

    def test_raising_listener_is_isolated(self, store, dogs, caplog):
        order = []

        def broken(event):
            if event.operation.kind is OperationKind.FETCH_COLLECTION:
                store.dispatch(dogs.invalidate_cache())
                raise RuntimeError("broken")

        store.subscribe(broken)
        store.subscribe(lambda event: order.append(event.operation.kind))
        store.dispatch(dogs.fetch_collection())

        # The later listener still sees the event and the queued nested one
        assert order == [OperationKind.FETCH_COLLECTION, OperationKind.INVALIDATE_CACHE]
        assert "store: listener failed on RSRC_DOGS_FETCH_COLLECTION" in caplog.text

    @pytest.mark.asyncio
    async def test_wait_for(self, store, dogs):
        request = dogs.fetch_collection()
        future = store.wait_for(lambda e: e.phase is Phase.SUCCEEDED)
        store.dispatch(request)
        assert not future.done()
        done = request.derive(Phase.SUCCEEDED, [REX], initiated=True)
        store.dispatch(done)
        assert await future is done

    @pytest.mark.asyncio
    async def test_wait_for_unsubscribes_on_cancel(self, store):
        future = store.wait_for(lambda e: True)
        assert len(store._listeners) == 1
        future.cancel()
        await asyncio.sleep(0)
        assert store._listeners == []
