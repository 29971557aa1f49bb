"""Per-chain protocol implementations and their registry."""

from airgap_coin.protocols.aeternity import AeternityProtocol, RawAeternityTransaction
from airgap_coin.protocols.base import (
    AirGapTransaction,
    CoinProtocol,
    FeeDefaults,
    HDCoinProtocol,
    SignedTransaction,
    UnsignedTransaction,
)
from airgap_coin.protocols.ethereum import EthereumProtocol, RawEthereumTransaction
from airgap_coin.protocols.registry import (
    get_protocol,
    get_supported_protocols,
    require_hd,
)
from airgap_coin.protocols.tezos import (
    TezosProtocol,
    TezosRevealOperation,
    TezosSpendOperation,
    TezosWrappedOperation,
)

__all__ = [
    "AirGapTransaction",
    "CoinProtocol",
    "FeeDefaults",
    "HDCoinProtocol",
    "SignedTransaction",
    "UnsignedTransaction",
    "AeternityProtocol",
    "RawAeternityTransaction",
    "EthereumProtocol",
    "RawEthereumTransaction",
    "TezosProtocol",
    "TezosRevealOperation",
    "TezosSpendOperation",
    "TezosWrappedOperation",
    "get_protocol",
    "get_supported_protocols",
    "require_hd",
]
