"""
Payment verification stages
"""

from x402_facilitator.verification.funds import BalanceOracle
from x402_facilitator.verification.matcher import match_requirements
from x402_facilitator.verification.pipeline import VerificationPipeline
from x402_facilitator.verification.signature import SignatureVerifier
from x402_facilitator.verification.timing import TimingGuard

__all__ = [
    "BalanceOracle",
    "SignatureVerifier",
    "TimingGuard",
    "VerificationPipeline",
    "match_requirements",
]
