"""
Resource definitions.

One ResourceDefinitions holds, per resource type, the transport client,
request creators, selectors and sagas. Build it once at startup, define
every type, and pass it to whatever needs cross-type lookups:

    definitions = ResourceDefinitions(api_version="3")
    dog_selectors, dog_actions = definitions.define(
        "good-dogs",
        create=True,
        custom_actions={
            "eat-doggie-biscuit": {"kind": "individual", "invalidation": True},
            "run-iditarod": {"kind": "collection"},
        },
    )

    store = Store()
    definitions.start(store)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from sasc.config import Settings
from sasc.config import settings as default_settings
from sasc.kernel.events import ResourceActions
from sasc.kernel.selectors import ResourceSelectors
from sasc.kernel.types import ProtocolError, is_valid_name
from sasc.models.options import ResourceOptions
from sasc.services.http_client import HttpResourceClient, ResourceTransport
from sasc.services.sagas import ResourceSagas
from sasc.services.store import Store

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str, ResourceOptions], ResourceTransport]


class ResourceDefinitions:
    """Registry of resource types for one client instance."""

    def __init__(
        self,
        api_version: str | None = None,
        *,
        transport_factory: TransportFactory | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or default_settings
        self.api_version = api_version or self.settings.API_VERSION
        self._transport_factory = transport_factory or self._http_transport
        self._http: httpx.AsyncClient | None = None
        self.store: Store | None = None

        self._options: dict[str, ResourceOptions] = {}
        self._clients: dict[str, ResourceTransport] = {}
        self._actions: dict[str, ResourceActions] = {}
        self._selectors: dict[str, ResourceSelectors] = {}
        self._sagas: dict[str, ResourceSagas] = {}

    def define(self, resource_type: str, **options: Any) -> tuple[ResourceSelectors, ResourceActions]:
        """
        Configure a resource type. Unspecified options take their defaults
        (see ResourceOptions). Returns (selectors, actions).

        Raises ProtocolError for a bad or duplicate type name, and pydantic's
        ValidationError for unknown or malformed options.
        """
        if not is_valid_name(resource_type):
            raise ProtocolError(
                f"'{resource_type}' is not a valid resource type. Use dash-separated lowercase, e.g. 'dog-kennels'"
            )
        if resource_type in self._options:
            raise ProtocolError(f"'{resource_type}' is already defined")

        config = ResourceOptions(**options)
        client = self._transport_factory(resource_type, config)
        actions = ResourceActions(resource_type, config)
        selectors = ResourceSelectors(resource_type, actions, config)
        sagas = ResourceSagas(self, resource_type, client, actions, selectors, config)

        self._options[resource_type] = config
        self._clients[resource_type] = client
        self._actions[resource_type] = actions
        self._selectors[resource_type] = selectors
        self._sagas[resource_type] = sagas

        if self.store is not None:
            self.store.register(resource_type)
            sagas.start(self.store)

        logger.debug("registry: defined %s", resource_type)
        return selectors, actions

    # -- lookups -------------------------------------------------------------

    def is_defined(self, resource_type: str) -> bool:
        return resource_type in self._options

    @property
    def resource_types(self) -> list[str]:
        return list(self._options)

    def options(self, resource_type: str) -> ResourceOptions:
        return self._lookup(self._options, resource_type)

    def client(self, resource_type: str) -> ResourceTransport:
        return self._lookup(self._clients, resource_type)

    def actions(self, resource_type: str) -> ResourceActions:
        return self._lookup(self._actions, resource_type)

    def selectors(self, resource_type: str) -> ResourceSelectors:
        return self._lookup(self._selectors, resource_type)

    def sagas(self, resource_type: str) -> ResourceSagas:
        return self._lookup(self._sagas, resource_type)

    def _lookup(self, table: dict[str, Any], resource_type: str) -> Any:
        try:
            return table[resource_type]
        except KeyError:
            raise ProtocolError(f"'{resource_type}' is not a defined resource type") from None

    # -- lifecycle -----------------------------------------------------------

    def start(self, store: Store) -> None:
        """Register every type with the store and start its workers. Call inside a running loop."""
        self.store = store
        for resource_type, sagas in self._sagas.items():
            store.register(resource_type)
            sagas.start(store)

    async def join(self) -> None:
        """Wait until no queue holds unhandled requests."""
        for sagas in list(self._sagas.values()):
            await sagas.join()

    async def stop(self) -> None:
        """Cancel every worker and close the shared HTTP client."""
        for sagas in self._sagas.values():
            await sagas.stop()
        self.store = None
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _http_transport(self, resource_type: str, options: ResourceOptions) -> ResourceTransport:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.settings.HTTP_TIMEOUT)
        return HttpResourceClient(
            resource_type,
            options,
            api_version=self.api_version,
            http=self._http,
            settings=self.settings,
        )
