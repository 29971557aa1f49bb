"""Network access for transaction preparation and broadcasting."""

from airgap_coin.network.gateway import JsonRpcGateway, NetworkGateway

__all__ = ["JsonRpcGateway", "NetworkGateway"]
