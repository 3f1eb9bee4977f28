"""
Stable failure reasons reported by the facilitator
"""

from enum import Enum


class ErrorReason(str, Enum):
    """Wire identifiers for verification and settlement failures.

    Values are part of the public protocol; internal exception types map onto
    them and may change without affecting what clients see.
    """

    SCHEME_MISMATCH = "scheme_mismatch"
    NETWORK_MISMATCH = "network_mismatch"
    UNSUPPORTED_NETWORK = "unsupported_network"
    RECEIVER_MISMATCH = "receiver_mismatch"
    INSUFFICIENT_VALUE = "insufficient_value"
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_TIMING = "invalid_timing"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    DECODING_ERROR = "decoding_error"
    AUTHORIZATION_USED = "authorization_used"
    TRANSACTION_FAILED = "transaction_failed"
    CONTRACT_CALL = "contract_call"
    INVALID_ADDRESS = "invalid_address"
    CLOCK_ERROR = "clock_error"
    SETTLEMENT_IN_PROGRESS = "settlement_in_progress"


class Severity(str, Enum):
    """Whether a failure describes the payment or the facilitator itself"""

    PROTOCOL_INVALID = "protocol_invalid"
    INFRASTRUCTURE_FAULT = "infrastructure_fault"


INFRASTRUCTURE_REASONS = frozenset(
    {
        ErrorReason.CONTRACT_CALL,
        ErrorReason.INVALID_ADDRESS,
        ErrorReason.CLOCK_ERROR,
    }
)


def severity_of(reason: ErrorReason) -> Severity:
    """Return the severity class of *reason*."""
    if reason in INFRASTRUCTURE_REASONS:
        return Severity.INFRASTRUCTURE_FAULT
    return Severity.PROTOCOL_INVALID
