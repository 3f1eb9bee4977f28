"""
Settlement orchestrator: idempotent, retrying execution of transferWithAuthorization
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from x402_facilitator.chain.base import ChainClient, ChainClients
from x402_facilitator.clock import Clock, SystemClock
from x402_facilitator.exceptions import (
    BroadcastUncertainError,
    ConfigurationError,
    FacilitatorError,
    ReceiptTimeoutError,
    TransactionRejectedError,
    TransientRpcError,
)
from x402_facilitator.models import PaymentAuthorization, PaymentTerms
from x402_facilitator.outcome import SettleOutcome, classify
from x402_facilitator.reasons import ErrorReason
from x402_facilitator.settlement.records import (
    InMemorySettlementStore,
    SettlementKey,
    SettlementRecord,
    SettlementState,
    SettlementStore,
)
from x402_facilitator.verification.pipeline import VerificationPipeline

T = TypeVar("T")


@dataclass(frozen=True)
class SettlementPolicy:
    """Retry and timeout knobs of the orchestrator"""

    # attempts for RPC calls that fail before anything is sent
    max_attempts: int = 3
    # delay before retry n (0-based) is backoff_base * 2**n
    backoff_base: float = 0.5
    # how long a settle call waits for a terminal state
    wait_seconds: float = 60.0
    # timeout of a single receipt poll
    receipt_timeout: float = 30.0
    # upper bound of the delay between polls once a transaction may exist
    max_backoff: float = 30.0

    def backoff(self, attempt: int) -> float:
        return self.backoff_base * (2**attempt)

    def poll_backoff(self, attempt: int) -> float:
        return min(self.backoff(min(attempt, 16)), self.max_backoff)


class _SettlementFailed(Exception):
    """Ends a settlement run with a definitive answer from the chain"""

    def __init__(self, reason: ErrorReason, message: str):
        self.reason = reason
        super().__init__(message)


class _Undecided(Exception):
    """Nothing was sent and the chain could not be asked; the key is released"""

    pass


class SettlementOrchestrator:
    """Drives verified authorizations to a terminal on-chain state.

    Each authorization (network, token, payer, nonce) is broadcast at most
    once per process. Concurrent and repeated settle calls for the same
    authorization share one background settlement task and observe the same
    outcome.

    Only a definitive answer from the chain ends a settlement as FAILED. An
    infrastructure fault before the broadcast releases the authorization so
    that a later settle can try again; after the broadcast the record stays
    SUBMITTED and confirmation is polled until the chain answers.
    """

    def __init__(
        self,
        pipeline: VerificationPipeline,
        chain_clients: ChainClients,
        store: Optional[SettlementStore] = None,
        policy: Optional[SettlementPolicy] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._pipeline = pipeline
        self._chain_clients = chain_clients
        self._store = store or InMemorySettlementStore()
        self._policy = policy or SettlementPolicy()
        self._clock = clock or SystemClock()
        self._tasks: set[asyncio.Task] = set()
        self.logger = logging.getLogger(self.__class__.__name__)

    async def settle(
        self,
        requirements: PaymentTerms,
        authorization: PaymentAuthorization,
        now: int,
    ) -> SettleOutcome:
        network = requirements.network
        try:
            self._pipeline.check_authorization(requirements, authorization)
        except FacilitatorError as e:
            return self._rejected(e, authorization, network)

        await self._store.evict_expired(now)
        key = SettlementKey(
            network=network,
            token=requirements.asset,
            payer=authorization.payer,
            nonce=authorization.nonce,
        )

        # A known authorization returns its recorded outcome even when the
        # window has since closed or the balance was spent by this transfer.
        record = await self._store.get(key)
        if record is not None:
            self.logger.info("[SETTLE] Duplicate settle for %s (%s)", key, record.state.value)
            return await self._await_record(record, authorization, network)

        try:
            await self._pipeline.check_conditions(requirements, authorization, now)
        except FacilitatorError as e:
            return self._rejected(e, authorization, network)

        record, created = await self._store.claim(key)
        if not created:
            self.logger.info("[SETTLE] Lost claim race for %s", key)
            return await self._await_record(record, authorization, network)

        task = asyncio.create_task(self._run(record, requirements, authorization))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        try:
            # the settlement keeps running if this caller goes away
            return await asyncio.wait_for(asyncio.shield(task), self._policy.wait_seconds)
        except asyncio.TimeoutError:
            return self._in_progress(record, authorization, network)

    async def drain(self, timeout: float) -> None:
        """Wait up to *timeout* seconds for background settlements to finish"""
        if not self._tasks:
            return
        self.logger.info("Waiting for %d in-flight settlements", len(self._tasks))
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            self.logger.warning("%d settlements still unconfirmed at shutdown", len(pending))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _rejected(
        self, error: FacilitatorError, authorization: PaymentAuthorization, network: str
    ) -> SettleOutcome:
        reason, _ = classify(error)
        self.logger.info(
            "[SETTLE] Rejected payer=%s reason=%s: %s", authorization.payer, reason.value, error
        )
        return SettleOutcome.failed(reason, payer=authorization.payer, network=network)

    def _in_progress(
        self, record: SettlementRecord, authorization: PaymentAuthorization, network: str
    ) -> SettleOutcome:
        return SettleOutcome.failed(
            ErrorReason.SETTLEMENT_IN_PROGRESS,
            payer=authorization.payer,
            network=network,
            transaction=record.transaction,
        )

    async def _await_record(
        self, record: SettlementRecord, authorization: PaymentAuthorization, network: str
    ) -> SettleOutcome:
        if not await record.wait(self._policy.wait_seconds):
            return self._in_progress(record, authorization, network)
        return record.outcome

    async def _run(
        self,
        record: SettlementRecord,
        requirements: PaymentTerms,
        authorization: PaymentAuthorization,
    ) -> SettleOutcome:
        network = requirements.network
        record.advance(SettlementState.SUBMITTED)
        try:
            client = self._chain_clients.for_network(network)
            await self._check_unused(client, requirements, authorization)
            record.transaction = await self._broadcast(client, requirements, authorization)
        except _SettlementFailed as e:
            return await self._fail(record, e, authorization, network)
        except (_Undecided, ConfigurationError) as e:
            self.logger.error("[SETTLE] No decision for %s: %s", record.key, e)
            return await self._release(record, authorization, network)
        except Exception:
            self.logger.exception("[SETTLE] Unexpected error settling %s", record.key)
            return await self._release(record, authorization, network)

        # from here on the transaction may exist: only the chain ends the settlement
        try:
            tx_hash = await self._confirm(record, client, requirements, authorization)
        except _SettlementFailed as e:
            return await self._fail(record, e, authorization, network)

        self.logger.info("[SETTLE] Confirmed %s in %s", record.key, tx_hash)
        outcome = SettleOutcome.succeeded(
            network, tx_hash, authorization.payer, authorization.amount
        )
        return await self._finish(record, SettlementState.CONFIRMED, outcome)

    async def _fail(
        self,
        record: SettlementRecord,
        error: _SettlementFailed,
        authorization: PaymentAuthorization,
        network: str,
    ) -> SettleOutcome:
        self.logger.warning(
            "[SETTLE] Failed %s reason=%s: %s", record.key, error.reason.value, error
        )
        outcome = SettleOutcome.failed(
            error.reason,
            payer=authorization.payer,
            network=network,
            transaction=record.transaction,
        )
        return await self._finish(record, SettlementState.FAILED, outcome)

    async def _finish(
        self, record: SettlementRecord, state: SettlementState, outcome: SettleOutcome
    ) -> SettleOutcome:
        record.finish(state, outcome, now=self._clock.now())
        await self._store.retire(record)
        return outcome

    async def _release(
        self, record: SettlementRecord, authorization: PaymentAuthorization, network: str
    ) -> SettleOutcome:
        """Give the key back after a fault that left nothing on chain"""
        outcome = SettleOutcome.failed(
            ErrorReason.CONTRACT_CALL, payer=authorization.payer, network=network
        )
        await self._store.release(record)
        record.abandon(outcome)
        return outcome

    async def _check_unused(
        self,
        client: ChainClient,
        requirements: PaymentTerms,
        authorization: PaymentAuthorization,
    ) -> None:
        used = await self._retry(
            lambda: client.authorization_used(
                requirements.network,
                requirements.asset,
                authorization.payer,
                authorization.nonce,
            ),
            "authorizationState",
        )
        if used:
            raise _SettlementFailed(
                ErrorReason.AUTHORIZATION_USED, "authorization nonce already used on chain"
            )

    async def _retry(self, call: Callable[[], Awaitable[T]], what: str) -> T:
        """Run a call that sends nothing, retrying transient RPC failures"""
        policy = self._policy
        attempt = 0
        while True:
            try:
                return await call()
            except TransientRpcError as e:
                attempt += 1
                if attempt >= policy.max_attempts:
                    raise _Undecided(f"{what} failed after {attempt} attempts: {e}") from e
                delay = policy.backoff(attempt - 1)
                self.logger.warning("%s failed (%s), retrying in %.2fs", what, e, delay)
                await asyncio.sleep(delay)

    async def _broadcast(
        self,
        client: ChainClient,
        requirements: PaymentTerms,
        authorization: PaymentAuthorization,
    ) -> str:
        try:
            return await self._retry(
                lambda: client.transfer_with_authorization(
                    requirements.network, requirements.asset, authorization
                ),
                "transferWithAuthorization",
            )
        except BroadcastUncertainError as e:
            # may have landed: never rebroadcast, confirm by hash instead
            self.logger.warning("Broadcast of %s uncertain: %s", e.tx_hash, e)
            return e.tx_hash
        except TransactionRejectedError as e:
            raise _SettlementFailed(ErrorReason.TRANSACTION_FAILED, str(e)) from e

    async def _confirm(
        self,
        record: SettlementRecord,
        client: ChainClient,
        requirements: PaymentTerms,
        authorization: PaymentAuthorization,
    ) -> str:
        """Poll until the chain gives a definitive answer about the transaction.

        Errors while polling never end the settlement: the transaction may
        already be mined, so the record stays SUBMITTED.
        """
        network = requirements.network
        tx_hash = record.transaction
        poll_failures = 0
        while True:
            try:
                receipt = await client.wait_for_receipt(
                    network, tx_hash, self._policy.receipt_timeout
                )
            except ReceiptTimeoutError:
                receipt = None
            except Exception as e:
                receipt = None
                delay = self._policy.poll_backoff(poll_failures)
                poll_failures += 1
                self.logger.warning("Receipt poll for %s failed (%s)", tx_hash, e)
                await asyncio.sleep(delay)

            if receipt is not None:
                if receipt.success:
                    return tx_hash
                raise _SettlementFailed(
                    ErrorReason.TRANSACTION_FAILED, f"transaction {tx_hash} reverted"
                )

            if self._clock.now() >= authorization.valid_before:
                return await self._resolve_expired(client, requirements, authorization, tx_hash)

    async def _resolve_expired(
        self,
        client: ChainClient,
        requirements: PaymentTerms,
        authorization: PaymentAuthorization,
        tx_hash: str,
    ) -> str:
        """No receipt and the window has closed: the nonce state is authoritative"""
        failures = 0
        while True:
            try:
                used = await client.authorization_used(
                    requirements.network,
                    requirements.asset,
                    authorization.payer,
                    authorization.nonce,
                )
                break
            except Exception as e:
                delay = self._policy.poll_backoff(failures)
                failures += 1
                self.logger.warning(
                    "authorizationState for %s failed (%s), asking again in %.2fs",
                    tx_hash,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)

        if used:
            self.logger.info("No receipt for %s but the nonce is consumed", tx_hash)
            return tx_hash
        raise _SettlementFailed(
            ErrorReason.INVALID_TIMING,
            f"authorization expired before {tx_hash} was mined",
        )
