"""
Chain clients
"""

from x402_facilitator.chain.base import ChainClient, ChainClients, TransactionReceipt

__all__ = ["ChainClient", "ChainClients", "TransactionReceipt"]
