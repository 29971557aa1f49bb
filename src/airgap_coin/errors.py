"""Exception hierarchy shared by all protocols.

Local validation failures derive from ValidationError, remote failures
from NetworkError, so callers can tell the two apart without inspecting
messages.
"""

from typing import Optional


class AirGapError(Exception):
    """Base exception for the library."""
    pass


class NetworkError(AirGapError):
    """Transport or HTTP failure while talking to a node or indexer."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class AccountNotFound(NetworkError):
    """The node has no record of the account (HTTP 404)."""
    pass


class BroadcastRejected(NetworkError):
    """The network refused the signed payload."""
    pass


class ValidationError(AirGapError):
    """Local validation failure, raised before anything is sent."""
    pass


class InsufficientBalance(ValidationError):
    """Balance does not cover amount plus fee."""

    def __init__(self, balance: int, required: int):
        super().__init__(f"not enough balance: have {balance}, need {required}")
        self.balance = balance
        self.required = required


class AddressError(ValidationError):
    """Malformed checksum-encoded address or key."""
    pass


class PrefixMismatch(AddressError):
    """Decoded payload does not start with the expected version prefix."""
    pass


class ChecksumInvalid(AddressError):
    """Base58Check checksum did not verify."""
    pass


class ForgingError(ValidationError):
    """An operation could not be serialized or parsed."""
    pass


class FieldTooLong(ForgingError):
    """A fixed-width field payload exceeds its width."""
    pass


class UnsupportedOperationKind(ForgingError):
    """Operation kind or tag has no binary encoding."""
    pass


class UnsupportedOperation(AirGapError):
    """The protocol variant does not implement the requested feature."""
    pass


class UnknownProtocol(AirGapError):
    """No protocol is registered under the given identifier."""
    pass


class RpcError(NetworkError):
    """A JSON-RPC node answered with an error object."""

    def __init__(self, message: str, code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message, url=url)
        self.code = code
