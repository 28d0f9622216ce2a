"""
SASC service test configuration.

FakeTransport stands in for the HTTP client: it serves canned wire
responses per call and records every call it receives. A call can be made
to wait on an asyncio.Event so tests can observe a request mid-flight.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
import pytest_asyncio

from sasc.services.registry import ResourceDefinitions
from sasc.services.store import Store


class FakeTransport:
    """In-memory ResourceTransport recording calls."""

    def __init__(self, resource_type: str, options: Any = None):
        self.resource_type = resource_type
        self.options = options
        self.calls: list[tuple[str, Any]] = []
        self.responses: dict[str, Any] = {}
        self.gate: asyncio.Event | None = None

    def respond(self, method: str, value: Any) -> None:
        """Queue a response (dict) or an exception to raise for a method."""
        self.responses[method] = value

    async def _answer(self, method: str, argument: Any) -> dict[str, Any]:
        self.calls.append((method, argument))
        if self.gate is not None:
            await self.gate.wait()
        value = self.responses.get(method, {})
        if isinstance(value, BaseException):
            raise value
        return value

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]

    async def get_collection(self, filters=None):
        return await self._answer("get_collection", dict(filters or {}))

    async def get_individual(self, id):
        return await self._answer("get_individual", id)

    async def create(self, data):
        return await self._answer("create", dict(data))

    async def update(self, data):
        return await self._answer("update", dict(data))

    async def destroy(self, id):
        return await self._answer("destroy", id)

    async def custom_action(self, name, id, arguments):
        return await self._answer(name, {"id": id, "arguments": dict(arguments)})


@pytest.fixture
def transports():
    return {}


@pytest.fixture
def definitions(transports):
    def factory(resource_type, options):
        transport = FakeTransport(resource_type, options)
        transports[resource_type] = transport
        return transport

    defs = ResourceDefinitions("3", transport_factory=factory)
    defs.define(
        "dogs",
        create=True,
        update=True,
        destroy=True,
        invalidates_cached_types={"kennels": True},
        custom_actions={
            "run-iditarod": {"kind": "collection", "invalidation": True},
            "eat-biscuit": {"kind": "individual"},
            "bark": {"kind": "individual", "invalidation": lambda result: result.get("loud"), "invalidate_on_fail": True},
        },
    )
    defs.define("kennels")
    defs.define("humans", create=True, mutations_invalidate=False)
    return defs


@pytest.fixture
def store():
    return Store()


@pytest_asyncio.fixture
async def running(definitions, store):
    """Definitions started on the test's loop; workers are stopped afterwards."""
    definitions.start(store)
    yield definitions
    await definitions.stop()
