"""
Facilitator - decodes x402 requests and dispatches them to verification and settlement
"""

import logging
from typing import Optional

from x402_facilitator.chain.base import ChainClients
from x402_facilitator.clock import Clock, SystemClock
from x402_facilitator.config import FacilitatorSettings
from x402_facilitator.exceptions import DecodingError, FacilitatorError
from x402_facilitator.models import (
    PaymentAuthorization,
    PaymentTerms,
    decode_authorization,
    decode_terms,
)
from x402_facilitator.outcome import SettleOutcome, VerifyOutcome, classify
from x402_facilitator.reasons import ErrorReason, Severity, severity_of
from x402_facilitator.registry import SupportedRegistry
from x402_facilitator.settlement.orchestrator import SettlementOrchestrator, SettlementPolicy
from x402_facilitator.settlement.records import InMemorySettlementStore
from x402_facilitator.types import (
    X402_VERSION,
    SettleRequest,
    SupportedResponse,
    VerifyRequest,
)
from x402_facilitator.verification.funds import BalanceOracle
from x402_facilitator.verification.pipeline import VerificationPipeline
from x402_facilitator.verification.timing import TimingGuard

logger = logging.getLogger(__name__)


class Facilitator:
    """
    x402 payment facilitator.

    Verifies EIP-3009 payment authorizations and settles them on chain.
    """

    def __init__(
        self,
        registry: SupportedRegistry,
        pipeline: VerificationPipeline,
        orchestrator: SettlementOrchestrator,
        clock: Optional[Clock] = None,
    ) -> None:
        self._registry = registry
        self._pipeline = pipeline
        self._orchestrator = orchestrator
        self._clock = clock or SystemClock()

    @classmethod
    def from_settings(
        cls,
        settings: FacilitatorSettings,
        chain_clients: ChainClients,
        clock: Optional[Clock] = None,
    ) -> "Facilitator":
        """Wire a facilitator serving every enabled network of *settings*"""
        clock = clock or SystemClock()
        registry = SupportedRegistry.for_networks(settings.enabled_networks())
        pipeline = VerificationPipeline(
            registry,
            timing_guard=TimingGuard(settings.clock_skew_seconds),
            balance_oracle=BalanceOracle(chain_clients),
            check_funds=settings.check_funds,
        )
        orchestrator = SettlementOrchestrator(
            pipeline,
            chain_clients,
            store=InMemorySettlementStore(settings.settlement_retention_seconds),
            policy=SettlementPolicy(
                max_attempts=settings.settle_max_attempts,
                backoff_base=settings.settle_backoff_seconds,
                wait_seconds=settings.settle_wait_seconds,
                receipt_timeout=settings.receipt_timeout_seconds,
            ),
            clock=clock,
        )
        logger.info("Facilitator serving networks: %s", registry.networks())
        return cls(registry, pipeline, orchestrator, clock)

    @property
    def orchestrator(self) -> SettlementOrchestrator:
        return self._orchestrator

    def supported(self) -> SupportedResponse:
        return self._registry.to_response()

    async def verify(self, request: VerifyRequest) -> VerifyOutcome:
        """Verify a payment without touching the chain state"""
        try:
            terms, authorization = self._decode(request)
            now = self._clock.now()
        except FacilitatorError as e:
            self._log_failure("verify", e, request)
            return VerifyOutcome.from_error(e)

        outcome = await self._pipeline.verify(terms, authorization, now)
        if _is_infrastructure(outcome.reason):
            logger.error(
                "[VERIFY] Infrastructure fault %s for request %s",
                outcome.reason.value,
                _dump(request),
            )
        return outcome

    async def settle(self, request: SettleRequest) -> SettleOutcome:
        """Verify a payment again and execute it on chain"""
        network = request.payment_requirements.network
        try:
            terms, authorization = self._decode(request)
            now = self._clock.now()
        except FacilitatorError as e:
            self._log_failure("settle", e, request)
            reason, _ = classify(e)
            return SettleOutcome.failed(reason, payer=e.payer, network=network)

        outcome = await self._orchestrator.settle(terms, authorization, now)
        if _is_infrastructure(outcome.reason):
            logger.error(
                "[SETTLE] Infrastructure fault %s for request %s",
                outcome.reason.value,
                _dump(request),
            )
        return outcome

    async def close(self, drain_timeout: float = 30.0) -> None:
        await self._orchestrator.drain(drain_timeout)

    def _decode(self, request: VerifyRequest) -> tuple[PaymentTerms, PaymentAuthorization]:
        """
        Raises:
            DecodingError: If a field is malformed or the protocol version is unknown
            InvalidAddressError: If an address is malformed
        """
        payload = request.payment_payload
        for version in (request.x402_version, payload.x402_version):
            if version != X402_VERSION:
                raise DecodingError(f"unsupported x402Version {version}")
        terms = decode_terms(request.payment_requirements)
        return terms, decode_authorization(payload, terms.family)

    def _log_failure(
        self, operation: str, error: FacilitatorError, request: VerifyRequest
    ) -> None:
        if _is_infrastructure(error.reason):
            logger.error(
                "[%s] %s: %s, request=%s",
                operation.upper(),
                error.reason.value,
                error,
                _dump(request),
            )
        else:
            logger.info("[%s] %s: %s", operation.upper(), error.reason.value, error)


def _dump(request: VerifyRequest) -> str:
    return request.model_dump_json(by_alias=True)


def _is_infrastructure(reason: Optional[ErrorReason]) -> bool:
    return reason is not None and severity_of(reason) == Severity.INFRASTRUCTURE_FAULT
