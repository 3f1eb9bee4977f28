"""
X402 Facilitator Utility Functions
"""

from x402_facilitator.utils.eip712 import (
    build_eip712_domain,
    build_eip712_message,
    build_typed_data,
    split_signature,
)

__all__ = [
    "build_eip712_domain",
    "build_eip712_message",
    "build_typed_data",
    "split_signature",
]
