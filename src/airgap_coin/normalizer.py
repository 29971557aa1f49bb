"""Chain-agnostic transaction summaries for display and audit."""

from typing import Optional, Sequence, Union

from airgap_coin.protocols.base import AirGapTransaction, SignedTransaction, UnsignedTransaction
from airgap_coin.protocols.registry import get_protocol


def summarize(
    transaction: Union[UnsignedTransaction, SignedTransaction],
    watched_addresses: Optional[Sequence[str]] = None,
) -> AirGapTransaction:
    """Summarize an unsigned or signed transaction of any supported chain.

    Unsigned: is_inbound tests the recipient against watched_addresses.
    Signed: is_inbound compares the recipient set with the watched set,
    which defaults to the sender.
    """
    protocol = get_protocol(transaction.protocol_identifier)

    if isinstance(transaction, SignedTransaction):
        return protocol.get_transaction_details_from_signed(transaction, watched_addresses)
    return protocol.get_transaction_details(transaction, watched_addresses or ())
