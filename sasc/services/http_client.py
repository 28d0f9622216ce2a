"""HTTP transport for one resource type."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Protocol

import httpx

from sasc.config import Settings
from sasc.config import settings as default_settings
from sasc.kernel.types import ProtocolError
from sasc.models.options import ResourceOptions

PROTOCOL_VERSION = "1.0.0"

# Custom action config method → HTTP verb
_ACTION_METHODS = {"post": "POST", "put": "PATCH", "delete": "DELETE"}


class ResourceTransport(Protocol):
    """What the sagas need from a transport. Each call returns the decoded response body."""

    async def get_collection(self, filters: Mapping[str, Any] | None = None) -> dict[str, Any]: ...

    async def get_individual(self, id: Any) -> dict[str, Any]: ...

    async def create(self, data: Mapping[str, Any]) -> dict[str, Any]: ...

    async def update(self, data: Mapping[str, Any]) -> dict[str, Any]: ...

    async def destroy(self, id: Any) -> dict[str, Any]: ...

    async def custom_action(self, name: str, id: Any, arguments: Mapping[str, Any]) -> dict[str, Any]: ...


class HttpResourceClient:
    """
    Talks to a SASC server for one resource type.

    Routes hang off /api/{namespace/}{type}. Non-2xx responses raise
    httpx.HTTPStatusError, which the sagas record as the failure.
    """

    def __init__(
        self,
        resource_type: str,
        options: ResourceOptions,
        *,
        api_version: str | None = None,
        http: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ):
        cfg = settings or default_settings
        self.resource_type = resource_type
        self.options = options
        self.api_version = api_version or cfg.API_VERSION
        self.base_url = cfg.API_BASE_URL.rstrip("/")
        self.client_name = cfg.CLIENT_NAME

        namespace = f"{options.namespace}/" if options.namespace else ""
        self.base_route = f"/api/{namespace}{resource_type}"

        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=cfg.HTTP_TIMEOUT)

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "x-sasc": PROTOCOL_VERSION,
            "x-sasc-api-version": str(self.api_version),
            "x-sasc-client": self.client_name,
        }

    def _url(self, route: str) -> str:
        return f"{self.base_url}{route}"

    def id_route(self, id: Any) -> str:
        return f"{self.base_route}/{id}"

    def action_route(self, name: str, id: Any = None) -> str:
        if id is None:
            return f"{self.base_route}/action/{name}"
        return f"{self.id_route(id)}/action/{name}"

    async def _request(self, method: str, route: str, body: dict | None = None, params: dict | None = None) -> dict:
        res = await self.http.request(
            method,
            self._url(route),
            json=body,
            params=params,
            headers=self._headers(),
        )
        res.raise_for_status()
        # DELETE usually answers with an empty body
        if not res.content:
            return {}
        return res.json()

    async def get_collection(self, filters: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """GET the index route. Each filter is sent as filter[key]=<json value>."""
        params = {f"filter[{key}]": json.dumps(value) for key, value in (filters or {}).items()}
        return await self._request("GET", self.base_route, params=params)

    async def get_individual(self, id: Any) -> dict[str, Any]:
        return await self._request("GET", self.id_route(id))

    async def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return await self._request("POST", self.base_route, body={"data": dict(data)})

    async def update(self, data: Mapping[str, Any]) -> dict[str, Any]:
        id = data.get("id")
        if not id:
            raise ProtocolError("Update data must include id")
        return await self._request("PATCH", self.id_route(id), body={"data": dict(data)})

    async def destroy(self, id: Any) -> dict[str, Any]:
        return await self._request("DELETE", self.id_route(id))

    async def custom_action(self, name: str, id: Any, arguments: Mapping[str, Any]) -> dict[str, Any]:
        config = self.options.custom_actions.get(name)
        if config is None:
            raise ProtocolError(f"'{self.resource_type}' has no custom action '{name}'")
        route = self.action_route(name, id if config.kind == "individual" else None)
        method = _ACTION_METHODS[config.method]
        # DELETE carries no body
        body = None if method == "DELETE" else {"arguments": dict(arguments or {})}
        return await self._request(method, route, body=body)

    async def close(self) -> None:
        """Close the underlying client, unless it was handed in (then its owner closes it)."""
        if self._owns_http:
            await self.http.aclose()
