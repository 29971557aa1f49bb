"""Tests for the HTTP and JSON-RPC gateways."""

import httpx
import pytest

from airgap_coin.config import Settings
from airgap_coin.errors import AccountNotFound, NetworkError, RpcError, UnsupportedOperation
from airgap_coin.network import JsonRpcGateway, NetworkGateway
from airgap_coin.protocols import AeternityProtocol, EthereumProtocol, TezosProtocol


def gateway_for(handler, gateway_class=NetworkGateway):
    return gateway_class("https://node.test", transport=httpx.MockTransport(handler))


class TestNetworkGateway:
    """Tests for error mapping in NetworkGateway."""

    @pytest.mark.asyncio
    async def test_returns_decoded_json(self):
        async with gateway_for(lambda request: httpx.Response(200, json={"balance": "5"})) as gateway:
            assert await gateway.get("/balance") == {"balance": "5"}

    @pytest.mark.asyncio
    async def test_404_is_account_not_found(self):
        async with gateway_for(lambda request: httpx.Response(404, text="missing")) as gateway:
            with pytest.raises(AccountNotFound) as exc_info:
                await gateway.get("/accounts/x")

        assert exc_info.value.status_code == 404
        assert exc_info.value.url == "https://node.test/accounts/x"

    @pytest.mark.asyncio
    async def test_server_error_keeps_status(self):
        async with gateway_for(lambda request: httpx.Response(502, text="bad gateway")) as gateway:
            with pytest.raises(NetworkError) as exc_info:
                await gateway.post("/inject", "00")

        assert exc_info.value.status_code == 502
        assert not isinstance(exc_info.value, AccountNotFound)

    @pytest.mark.asyncio
    async def test_transport_error_has_no_status(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with gateway_for(handler) as gateway:
            with pytest.raises(NetworkError) as exc_info:
                await gateway.get("/balance")

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with gateway_for(lambda request: httpx.Response(200, text="<html>")) as gateway:
            with pytest.raises(NetworkError, match="invalid JSON"):
                await gateway.get("/balance")


class TestJsonRpcGateway:
    """Tests for JSON-RPC calls."""

    @pytest.mark.asyncio
    async def test_result(self):
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x10"})

        async with gateway_for(handler, JsonRpcGateway) as gateway:
            assert await gateway.call("eth_blockNumber") == "0x10"

    @pytest.mark.asyncio
    async def test_error_object(self):
        def handler(request):
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "boom"}}
            )

        async with gateway_for(handler, JsonRpcGateway) as gateway:
            with pytest.raises(RpcError, match="boom") as exc_info:
                await gateway.call("eth_blockNumber")

        assert exc_info.value.code == -32000
        assert isinstance(exc_info.value, NetworkError)


class TestGatewayFactories:
    """Tests for building gateways from settings."""

    @pytest.mark.asyncio
    async def test_node_gateway_from_settings(self):
        settings = Settings(tezos_rpc_url="https://tezos.example/", http_timeout=5)

        gateway = TezosProtocol().create_gateway(settings)
        await gateway.aclose()

        assert isinstance(gateway, NetworkGateway)
        assert gateway.base_url == "https://tezos.example"

    @pytest.mark.asyncio
    async def test_ethereum_uses_json_rpc(self):
        gateway = EthereumProtocol().create_gateway(Settings())
        await gateway.aclose()

        assert isinstance(gateway, JsonRpcGateway)

    def test_no_indexer_for_aeternity(self):
        with pytest.raises(UnsupportedOperation):
            AeternityProtocol().create_indexer_gateway(Settings())
