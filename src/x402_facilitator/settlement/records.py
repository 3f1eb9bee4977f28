"""
Settlement records and the idempotency table
"""

import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from x402_facilitator.address import AddressRef
from x402_facilitator.outcome import SettleOutcome

logger = logging.getLogger(__name__)


class SettlementState(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SettlementState.CONFIRMED, SettlementState.FAILED)


# Allowed state transitions; terminal states have none
_TRANSITIONS: dict[SettlementState, frozenset[SettlementState]] = {
    SettlementState.PENDING: frozenset({SettlementState.SUBMITTED}),
    SettlementState.SUBMITTED: frozenset({SettlementState.CONFIRMED, SettlementState.FAILED}),
    SettlementState.CONFIRMED: frozenset(),
    SettlementState.FAILED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """A settlement record was moved along an edge the state machine does not have"""

    pass


@dataclass(frozen=True)
class SettlementKey:
    """One authorization: a nonce is scoped to its payer and token on a network"""

    network: str
    token: AddressRef
    payer: AddressRef
    nonce: bytes

    def __str__(self) -> str:
        return f"{self.network}/{self.token}/{self.payer}/0x{self.nonce.hex()}"


@dataclass
class SettlementRecord:
    """Progress of one settlement.

    Owned exclusively by the task that claimed it until it reaches a terminal
    state; never mutated afterwards.
    """

    key: SettlementKey
    state: SettlementState = SettlementState.PENDING
    transaction: Optional[str] = None
    outcome: Optional[SettleOutcome] = None
    terminal_at: Optional[float] = None
    done: asyncio.Event = field(default_factory=asyncio.Event, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def advance(self, state: SettlementState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"settlement {self.key}: {self.state.value} -> {state.value} is not allowed"
            )
        logger.debug("Settlement %s: %s -> %s", self.key, self.state.value, state.value)
        self.state = state

    def finish(self, state: SettlementState, outcome: SettleOutcome, now: float) -> None:
        """Move to a terminal *state* and wake every waiter"""
        if not state.is_terminal:
            raise InvalidTransitionError(f"{state.value} is not a terminal state")
        self.advance(state)
        self.outcome = outcome
        self.terminal_at = now
        self.done.set()

    async def wait(self, timeout: float) -> bool:
        """Wait up to *timeout* seconds for an outcome; False on timeout"""
        if self.done.is_set():
            return True
        try:
            await asyncio.wait_for(asyncio.shield(self.done.wait()), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def abandon(self, outcome: SettleOutcome) -> None:
        """Hand *outcome* to current waiters without reaching a terminal state.

        Used when the attempt could not reach a decision and the record is
        released from its store.
        """
        self.outcome = outcome
        self.done.set()


class SettlementStore(ABC):
    """Idempotency table of settlements keyed by authorization"""

    @abstractmethod
    async def get(self, key: SettlementKey) -> Optional[SettlementRecord]:
        pass

    @abstractmethod
    async def claim(self, key: SettlementKey) -> tuple[SettlementRecord, bool]:
        """Atomically fetch or create the record for *key*.

        Returns:
            The record, and True if this call created it (the caller owns it)
        """
        pass

    @abstractmethod
    async def release(self, record: SettlementRecord) -> None:
        """Forget *record* so that its key can be claimed again"""
        pass

    @abstractmethod
    async def retire(self, record: SettlementRecord) -> None:
        """Start the retention period of a record that reached a terminal state"""
        pass

    @abstractmethod
    async def evict_expired(self, now: float) -> int:
        """Drop terminal records older than the retention window.

        Returns:
            Number of records evicted
        """
        pass


class InMemorySettlementStore(SettlementStore):
    """Process-local settlement table.

    Every method runs without awaiting, so each one is atomic with respect to
    other coroutines on the same event loop. Retired records are kept in a
    heap ordered by terminal time; records that are still pending or
    submitted are never evicted.
    """

    def __init__(self, retention_seconds: float = 3600.0) -> None:
        self._retention_seconds = retention_seconds
        self._records: dict[SettlementKey, SettlementRecord] = {}
        # (terminal_at, sequence, record); the sequence keeps records out of comparisons
        self._retired: list[tuple[float, int, SettlementRecord]] = []
        self._sequence = itertools.count()

    async def get(self, key: SettlementKey) -> Optional[SettlementRecord]:
        return self._records.get(key)

    async def claim(self, key: SettlementKey) -> tuple[SettlementRecord, bool]:
        record = self._records.get(key)
        if record is not None:
            return record, False
        record = SettlementRecord(key=key)
        self._records[key] = record
        return record, True

    async def release(self, record: SettlementRecord) -> None:
        if self._records.get(record.key) is record:
            del self._records[record.key]

    async def retire(self, record: SettlementRecord) -> None:
        if not record.is_terminal or record.terminal_at is None:
            raise InvalidTransitionError(f"settlement {record.key} is not terminal")
        heapq.heappush(self._retired, (record.terminal_at, next(self._sequence), record))

    async def evict_expired(self, now: float) -> int:
        evicted = 0
        while self._retired and now - self._retired[0][0] >= self._retention_seconds:
            _, _, record = heapq.heappop(self._retired)
            if self._records.get(record.key) is record:
                del self._records[record.key]
                evicted += 1
        if evicted:
            logger.debug("Evicted %d expired settlement records", evicted)
        return evicted

    def __len__(self) -> int:
        return len(self._records)
