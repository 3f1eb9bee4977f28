"""
x402 facilitator exception hierarchy
"""

from typing import TYPE_CHECKING, Optional

from x402_facilitator.reasons import ErrorReason

if TYPE_CHECKING:
    from x402_facilitator.address import AddressRef


class X402Error(Exception):
    """x402 base exception"""

    pass


class ConfigurationError(X402Error):
    """Configuration-related error"""

    pass


# ---------------------------------------------------------------------------
# Verification / settlement failures (one class per ErrorReason)
# ---------------------------------------------------------------------------


class FacilitatorError(X402Error):
    """A classified failure of the verification or settlement pipeline.

    Every subclass is bound to exactly one ErrorReason, so the wire identifier
    of a failure never depends on where it was raised.
    """

    reason: ErrorReason = ErrorReason.CONTRACT_CALL

    def __init__(self, message: str | None = None, payer: Optional["AddressRef"] = None):
        self.payer = payer
        super().__init__(message or self.reason.value)


class SchemeMismatchError(FacilitatorError):
    reason = ErrorReason.SCHEME_MISMATCH


class NetworkMismatchError(FacilitatorError):
    reason = ErrorReason.NETWORK_MISMATCH


class UnsupportedNetworkError(FacilitatorError):
    reason = ErrorReason.UNSUPPORTED_NETWORK


class ReceiverMismatchError(FacilitatorError):
    reason = ErrorReason.RECEIVER_MISMATCH


class InsufficientValueError(FacilitatorError):
    reason = ErrorReason.INSUFFICIENT_VALUE


class InvalidSignatureError(FacilitatorError):
    reason = ErrorReason.INVALID_SIGNATURE


class InvalidTimingError(FacilitatorError):
    reason = ErrorReason.INVALID_TIMING


class InsufficientFundsError(FacilitatorError):
    reason = ErrorReason.INSUFFICIENT_FUNDS


class DecodingError(FacilitatorError):
    """Malformed payment payload; the message is reported to the caller"""

    reason = ErrorReason.DECODING_ERROR


class AuthorizationUsedError(FacilitatorError):
    """The authorization nonce was already consumed on chain"""

    reason = ErrorReason.AUTHORIZATION_USED


class TransactionFailedError(FacilitatorError):
    """The transfer was rejected or reverted on chain"""

    reason = ErrorReason.TRANSACTION_FAILED


class ContractCallError(FacilitatorError):
    """The chain could not be reached or answered with an error"""

    reason = ErrorReason.CONTRACT_CALL


class InvalidAddressError(FacilitatorError):
    """An address field failed format validation"""

    reason = ErrorReason.INVALID_ADDRESS

    def __init__(self, address: str, message: str | None = None):
        self.address = address
        super().__init__(message or f"Invalid address: {address!r}")


class ClockError(FacilitatorError):
    """The clock collaborator is unavailable"""

    reason = ErrorReason.CLOCK_ERROR


# ---------------------------------------------------------------------------
# Chain client failures
# ---------------------------------------------------------------------------


class ChainClientError(X402Error):
    """Chain client error"""

    pass


class TransientRpcError(ChainClientError):
    """RPC failure that happened before anything was sent; safe to retry"""

    pass


class BroadcastUncertainError(ChainClientError):
    """Broadcast failed after the signed transaction may have reached the network"""

    def __init__(self, tx_hash: str, message: str | None = None):
        self.tx_hash = tx_hash
        super().__init__(message or f"Broadcast outcome unknown for {tx_hash}")


class TransactionRejectedError(ChainClientError):
    """The transaction was rejected before broadcast (e.g. simulation revert)"""

    pass


class ReceiptTimeoutError(ChainClientError):
    """No receipt within the RPC timeout"""

    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(f"Transaction {tx_hash} not confirmed within {timeout}s")
