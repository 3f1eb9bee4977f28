"""
x402 payment facilitator: verifies and settles EIP-3009 payment authorizations
"""

__version__ = "0.1.0"

from x402_facilitator.exceptions import FacilitatorError, X402Error  # noqa: E402
from x402_facilitator.facilitator import Facilitator  # noqa: E402
from x402_facilitator.outcome import SettleOutcome, VerifyOutcome  # noqa: E402
from x402_facilitator.reasons import ErrorReason, Severity  # noqa: E402

__all__ = [
    "__version__",
    "ErrorReason",
    "Facilitator",
    "FacilitatorError",
    "Severity",
    "SettleOutcome",
    "VerifyOutcome",
    "X402Error",
]
