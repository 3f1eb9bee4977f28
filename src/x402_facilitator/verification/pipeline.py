"""
Verification pipeline: matcher, signature, timing and (optionally) funds
"""

import logging
from typing import Optional

from x402_facilitator.exceptions import FacilitatorError
from x402_facilitator.models import PaymentAuthorization, PaymentTerms
from x402_facilitator.outcome import VerifyOutcome, classify
from x402_facilitator.reasons import Severity
from x402_facilitator.registry import SupportedRegistry
from x402_facilitator.verification.funds import BalanceOracle
from x402_facilitator.verification.matcher import match_requirements
from x402_facilitator.verification.signature import SignatureVerifier
from x402_facilitator.verification.timing import TimingGuard

logger = logging.getLogger(__name__)


class VerificationPipeline:
    """Runs every verification stage in order; the first failure wins.

    Holds no mutable state and may be shared by concurrent requests.
    """

    def __init__(
        self,
        registry: SupportedRegistry,
        signature_verifier: Optional[SignatureVerifier] = None,
        timing_guard: Optional[TimingGuard] = None,
        balance_oracle: Optional[BalanceOracle] = None,
        check_funds: bool = True,
    ) -> None:
        self._registry = registry
        self._signature_verifier = signature_verifier or SignatureVerifier()
        self._timing_guard = timing_guard or TimingGuard()
        self._balance_oracle = balance_oracle
        self._check_funds = check_funds and balance_oracle is not None

    async def verify(
        self,
        requirements: PaymentTerms,
        authorization: PaymentAuthorization,
        now: int,
    ) -> VerifyOutcome:
        try:
            await self.check(requirements, authorization, now)
        except FacilitatorError as e:
            if e.payer is None:
                e.payer = authorization.payer
            _, severity = classify(e)
            level = logging.WARNING if severity == Severity.INFRASTRUCTURE_FAULT else logging.INFO
            logger.log(
                level, "[VERIFY] rejected payer=%s reason=%s: %s", e.payer, e.reason.value, e
            )
            return VerifyOutcome.from_error(e)
        return VerifyOutcome.valid(authorization.payer)

    async def check(
        self,
        requirements: PaymentTerms,
        authorization: PaymentAuthorization,
        now: int,
    ) -> None:
        """Raising variant of :meth:`verify`.

        Raises:
            FacilitatorError: The first failing check
        """
        self.check_authorization(requirements, authorization)
        await self.check_conditions(requirements, authorization, now)

    def check_authorization(
        self, requirements: PaymentTerms, authorization: PaymentAuthorization
    ) -> None:
        """Checks that depend only on the request: matcher and signature"""
        match_requirements(requirements, authorization, self._registry)
        self._signature_verifier.verify(authorization, requirements)

    async def check_conditions(
        self,
        requirements: PaymentTerms,
        authorization: PaymentAuthorization,
        now: int,
    ) -> None:
        """Checks that depend on time and chain state: timing and funds"""
        self._timing_guard.check(authorization, now)
        if self._check_funds:
            await self._balance_oracle.check_funds(
                requirements.network,
                requirements.asset,
                authorization.payer,
                authorization.amount,
            )
