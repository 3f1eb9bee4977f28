"""
Token registry module
"""

from x402_facilitator.tokens.registry import TokenInfo, TokenRegistry

__all__ = ["TokenInfo", "TokenRegistry"]
