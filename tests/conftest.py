"""Pytest configuration and fixtures."""

import json
import os
from typing import Any, Callable, Optional

import httpx
import pytest

# Set test environment
os.environ["AIRGAP_DEBUG"] = "true"
os.environ["AIRGAP_AETERNITY_NETWORK_ID"] = "ae_mainnet"
os.environ["AIRGAP_ETHEREUM_CHAIN_ID"] = "1"

from airgap_coin.config import get_settings
from airgap_coin.network import JsonRpcGateway, NetworkGateway
from airgap_coin.protocols.registry import reset_protocol_cache

# Fixed seeds; keys and addresses in tests are derived from these
SEED = bytes(range(64))
OTHER_SEED = bytes(range(64, 128))

Route = tuple[int, Any]


@pytest.fixture(autouse=True)
def fresh_registry():
    """Rebuild settings and protocol instances for every test."""
    get_settings.cache_clear()
    reset_protocol_cache()
    yield
    get_settings.cache_clear()
    reset_protocol_cache()


def json_response(status: int, body: Any) -> httpx.Response:
    # json=None would send an empty body, so serialize explicitly
    return httpx.Response(
        status,
        content=json.dumps(body).encode(),
        headers={"Content-Type": "application/json"},
    )


def mock_gateway(
    routes: dict[tuple[str, str], Route],
    requests: Optional[list[httpx.Request]] = None,
    base_url: str = "https://node.test",
) -> NetworkGateway:
    """Gateway answering (method, path) routes; anything else is a 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        route = routes.get((request.method, request.url.path))
        if route is None:
            return json_response(404, {"error": "not found"})
        return json_response(*route)

    return NetworkGateway(base_url, transport=httpx.MockTransport(handler))


def mock_rpc_gateway(
    methods: dict[str, Callable[[list], Any]],
    requests: Optional[list[dict]] = None,
) -> JsonRpcGateway:
    """JSON-RPC gateway answering by method name.

    Each handler gets the params and returns a result. Handlers that return
    a dict with an "error" key produce an error response.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        if requests is not None:
            requests.append(payload)
        method_handler = methods.get(payload["method"])
        if method_handler is None:
            return json_response(200, {
                "jsonrpc": "2.0",
                "id": payload["id"],
                "error": {"code": -32601, "message": "method not found"},
            })

        result = method_handler(payload["params"])
        if isinstance(result, dict) and "error" in result:
            return json_response(200, {"jsonrpc": "2.0", "id": payload["id"], **result})
        return json_response(200, {"jsonrpc": "2.0", "id": payload["id"], "result": result})

    return JsonRpcGateway("https://rpc.test", transport=httpx.MockTransport(handler))
