"""
SASC Service Test Suite

Store, sagas, helpers, HTTP transport, registry and adapter tests. Sagas
run against FakeTransport (see conftest.py), never the network.
"""

from typing import Any


def wire(resource_type: str, id: str, **attributes: Any) -> dict[str, Any]:
    """A resource as the server sends it."""
    return {"id": id, "type": resource_type, "attributes": attributes}
