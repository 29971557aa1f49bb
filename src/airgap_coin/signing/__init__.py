"""Offline transaction signing.

- SigningRequest: forged bytes plus optional domain context
- OfflineSigner: signs requests with a caller-supplied private key
"""

from airgap_coin.signing.base import SigningError, SigningRequest
from airgap_coin.signing.local import OfflineSigner

__all__ = [
    "OfflineSigner",
    "SigningError",
    "SigningRequest",
]
