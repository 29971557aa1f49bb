"""Offline signer.

Runs on the air-gapped device. Takes forged bytes and a private key and
returns signed bytes; it has no network dependency and nothing to cancel.
"""

import logging

from airgap_coin.errors import AirGapError
from airgap_coin.protocols.base import SignedTransaction
from airgap_coin.protocols.registry import get_protocol
from airgap_coin.signing.base import SigningError, SigningRequest

logger = logging.getLogger(__name__)


class OfflineSigner:
    """Signs forged transactions with a caller-supplied private key.

    The signer keeps no key material between calls.

    Usage:
        signer = OfflineSigner()
        signed = signer.sign(SigningRequest("xtz", forged_bytes), key_pair.private_key)
    """

    def sign(self, request: SigningRequest, private_key: bytes) -> SignedTransaction:
        """Sign the request's payload.

        Raises:
            SigningError: If the payload is empty or the key is unusable
            UnknownProtocol: If the protocol identifier is not registered
        """
        protocol = get_protocol(request.protocol_identifier)

        if not request.unsigned_payload:
            raise SigningError("refusing to sign an empty payload")

        try:
            signed = protocol.sign_with_private_key(
                private_key, request.unsigned_payload, network_id=request.network_id
            )
        except AirGapError:
            raise
        except Exception as e:
            logger.error(f"Offline signing failed: {e}")
            raise SigningError(f"{protocol.identifier} signing failed: {e}") from e

        logger.info(
            f"Signed {len(request.unsigned_payload)} byte {protocol.identifier} payload"
            + (f" ({request.metadata})" if request.metadata else "")
        )
        return signed

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
