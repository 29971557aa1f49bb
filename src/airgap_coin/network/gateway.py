"""HTTP gateway to chain nodes and indexers.

Thin wrapper over httpx that returns decoded JSON and maps failures onto
the library's error types:

- HTTP 404        -> AccountNotFound
- other non-2xx   -> NetworkError (status_code set)
- transport error -> NetworkError (status_code None)

Nothing is retried here; callers own retry and backoff.
"""

import logging
from typing import Any, Optional

import httpx

from airgap_coin.errors import AccountNotFound, NetworkError, RpcError

logger = logging.getLogger(__name__)


class NetworkGateway:
    """JSON-over-HTTP client bound to one base URL.

    Usage:
        async with NetworkGateway("https://rpc.tezrpc.me") as gateway:
            balance = await gateway.get("/chains/main/blocks/head/hash")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize gateway.

        Args:
            base_url: Node or indexer root URL
            timeout: Request timeout in seconds
            headers: Extra headers sent with every request
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Accept": "application/json", **(headers or {})},
            transport=transport,
        )

    async def __aenter__(self) -> "NetworkGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET a path and return the decoded JSON body."""
        return await self._request("GET", path, params=params)

    async def post(self, path: str, body: Any = None, params: Optional[dict[str, Any]] = None) -> Any:
        """POST a JSON body and return the decoded JSON response."""
        return await self._request("POST", path, json=body, params=params)

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {url} failed: {e}", url=url) from e

        if response.status_code == 404:
            raise AccountNotFound(f"{url} not found", status_code=404, url=url)

        if response.is_error:
            raise NetworkError(
                f"{method} {url} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                url=url,
            )

        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"{url} returned invalid JSON", status_code=response.status_code, url=url) from e


class JsonRpcGateway(NetworkGateway):
    """Gateway for JSON-RPC 2.0 endpoints (EVM nodes)."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._request_id = 0

    async def call(self, method: str, params: Optional[list] = None) -> Any:
        """Invoke a JSON-RPC method and return its result.

        Raises:
            RpcError: If the node answers with an error object
        """
        self._request_id += 1
        data = await self.post(
            "",
            {
                "jsonrpc": "2.0",
                "method": method,
                "params": params or [],
                "id": self._request_id,
            },
        )

        if "error" in data:
            error = data["error"]
            if not isinstance(error, dict):
                error = {"message": error}
            raise RpcError(f"{method} failed: {error.get('message')}", code=error.get("code"), url=self.base_url)

        return data.get("result")
