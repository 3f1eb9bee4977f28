"""
Settlement of verified authorizations
"""

from x402_facilitator.settlement.orchestrator import SettlementOrchestrator, SettlementPolicy
from x402_facilitator.settlement.records import (
    InMemorySettlementStore,
    SettlementKey,
    SettlementRecord,
    SettlementState,
    SettlementStore,
)

__all__ = [
    "InMemorySettlementStore",
    "SettlementKey",
    "SettlementOrchestrator",
    "SettlementPolicy",
    "SettlementRecord",
    "SettlementState",
    "SettlementStore",
]
