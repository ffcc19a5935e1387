"""Exception taxonomy for cross-chain transfers.

Fatal errors abort the whole transfer. TransientQueryError is only ever
raised inside the status polling loop and absorbed there.
"""

from typing import Any, Optional


class BridgeError(Exception):
    """Base class for every error raised by bridgeflow.

    Attributes:
        message: Human readable description
        payload: Structured error data (receipt, RPC error, response body)
    """

    def __init__(self, message: str, payload: Optional[Any] = None):
        self.message = message
        self.payload = payload
        super().__init__(message)


class ConfigurationError(BridgeError):
    """Missing key material or unsupported chain."""
    pass


class ValidationError(BridgeError):
    """Plan kind does not match the source chain family, or a request was reused."""
    pass


class TransactionFailed(BridgeError):
    """Transaction reverted or errored on-chain."""
    pass


class ConfirmationTimeout(BridgeError):
    """Confirmation wait exceeded. The transaction may still land."""
    pass


class TransientQueryError(BridgeError):
    """Network or server hiccup while querying transfer status."""
    pass


class PollingTimeout(BridgeError):
    """Status attempt budget exhausted. Outcome unknown, not assumed failed."""
    pass


class MissingAuthChallenge(BridgeError):
    """Signing was requested but the quote carried no auth message."""
    pass


class TransferFailed(BridgeError):
    """Remote status machine reached FAILED."""
    pass


class ApiError(BridgeError):
    """Non-retryable error response from the quoting service."""

    def __init__(self, message: str, payload: Optional[Any] = None, status_code: Optional[int] = None):
        super().__init__(message, payload)
        self.status_code = status_code
