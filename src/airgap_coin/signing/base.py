"""Base types for offline transaction signing.

Signing flow:
1. Online device prepares and forges an unsigned transaction
2. Forged bytes cross the air gap (QR, file, ...)
3. Offline device signs the bytes with its private key
4. Signed bytes cross back and are broadcast

Nothing in this package accepts a network gateway.
"""

from dataclasses import dataclass, field
from typing import Optional

from airgap_coin.errors import AirGapError


@dataclass(frozen=True)
class SigningRequest:
    """Request to sign forged transaction bytes.

    Attributes:
        protocol_identifier: Chain identifier (xtz, ae, eth)
        unsigned_payload: Forged bytes exactly as the network will see them
        network_id: Domain separation string for chains that sign one (ae)
        metadata: Optional metadata for audit logging
    """

    protocol_identifier: str
    unsigned_payload: bytes = field(repr=False)
    network_id: Optional[str] = None
    metadata: Optional[dict] = None


class SigningError(AirGapError):
    """Exception raised when signing fails."""
    pass
