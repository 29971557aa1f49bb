"""Protocol registry.

Maps protocol identifiers (lowercase tickers) to the fixed set of
supported chains. The mapping is built once from settings on first use
and is read-only afterwards.
"""

from functools import lru_cache
from types import MappingProxyType
from typing import Mapping

from airgap_coin.config import get_settings
from airgap_coin.errors import UnknownProtocol, UnsupportedOperation
from airgap_coin.protocols.aeternity import AeternityProtocol
from airgap_coin.protocols.base import CoinProtocol, HDCoinProtocol
from airgap_coin.protocols.ethereum import EthereumProtocol
from airgap_coin.protocols.tezos import TezosProtocol

PROTOCOL_CLASSES: Mapping[str, type[CoinProtocol]] = MappingProxyType({
    TezosProtocol.identifier: TezosProtocol,
    AeternityProtocol.identifier: AeternityProtocol,
    EthereumProtocol.identifier: EthereumProtocol,
})


@lru_cache
def _protocols() -> Mapping[str, CoinProtocol]:
    settings = get_settings()
    return MappingProxyType({
        TezosProtocol.identifier: TezosProtocol(),
        AeternityProtocol.identifier: AeternityProtocol(network_id=settings.aeternity_network_id),
        EthereumProtocol.identifier: EthereumProtocol(
            chain_id=settings.ethereum_chain_id,
            explorer_api_key=settings.etherscan_api_key,
        ),
    })


def get_supported_protocols() -> list[str]:
    """Get list of supported protocol identifiers."""
    return list(PROTOCOL_CLASSES.keys())


def get_protocol(identifier: str) -> CoinProtocol:
    """Get the protocol instance for an identifier.

    Raises:
        UnknownProtocol: If no protocol is registered under identifier
    """
    protocol = _protocols().get(identifier.lower())
    if protocol is None:
        raise UnknownProtocol(f"unsupported protocol {identifier!r}, expected one of {get_supported_protocols()}")
    return protocol


def require_hd(protocol: CoinProtocol) -> HDCoinProtocol:
    """Narrow a protocol to its extended-key interface.

    Raises:
        UnsupportedOperation: If the protocol cannot derive from extended keys
    """
    if not protocol.supports_hd or not isinstance(protocol, HDCoinProtocol):
        raise UnsupportedOperation(f"extended key operations are not supported for {protocol.identifier}")
    return protocol


def get_protocol_info(identifier: str) -> dict:
    """Describe a protocol for display.

    Returns:
        Dict with symbol, precision, fee tiers and capabilities
    """
    protocol = get_protocol(identifier)
    return {
        "identifier": protocol.identifier,
        "symbol": protocol.symbol,
        "name": protocol.name,
        "decimals": protocol.decimals,
        "fee_decimals": protocol.fee_decimals,
        "fee_defaults": {
            "low": str(protocol.fee_defaults.low),
            "medium": str(protocol.fee_defaults.medium),
            "high": str(protocol.fee_defaults.high),
        },
        "standard_derivation_path": protocol.standard_derivation_path,
        "supports_hd": protocol.supports_hd,
    }


def reset_protocol_cache() -> None:
    """Rebuild protocol instances on next lookup (useful for testing)."""
    _protocols.cache_clear()
