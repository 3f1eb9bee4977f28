"""
Verification and settlement outcomes, and their mapping onto the wire
"""

from dataclasses import dataclass
from typing import Optional, Union

from x402_facilitator.address import AddressRef
from x402_facilitator.exceptions import FacilitatorError
from x402_facilitator.reasons import INFRASTRUCTURE_REASONS, ErrorReason, Severity, severity_of
from x402_facilitator.types import SettleResponse, VerifyResponse

HTTP_OK = 200
HTTP_BAD_REQUEST = 400


@dataclass(frozen=True)
class VerifyOutcome:
    """Verdict of the verification pipeline. Returned, never raised."""

    is_valid: bool
    payer: Optional[AddressRef] = None
    reason: Optional[ErrorReason] = None
    detail: Optional[str] = None

    @classmethod
    def valid(cls, payer: AddressRef) -> "VerifyOutcome":
        return cls(is_valid=True, payer=payer)

    @classmethod
    def invalid(
        cls,
        reason: ErrorReason,
        payer: Optional[AddressRef] = None,
        detail: Optional[str] = None,
    ) -> "VerifyOutcome":
        return cls(is_valid=False, payer=payer, reason=reason, detail=detail)

    @classmethod
    def from_error(cls, error: FacilitatorError) -> "VerifyOutcome":
        reason, severity = classify(error)
        # infrastructure detail stays in the logs
        detail = str(error) if severity == Severity.PROTOCOL_INVALID else None
        return cls.invalid(reason, payer=error.payer, detail=detail)


@dataclass(frozen=True)
class SettleOutcome:
    """Result of a settlement attempt"""

    success: bool
    network: Optional[str] = None
    transaction: Optional[str] = None
    payer: Optional[AddressRef] = None
    amount: Optional[int] = None
    reason: Optional[ErrorReason] = None

    @classmethod
    def succeeded(
        cls, network: str, transaction: str, payer: AddressRef, amount: int
    ) -> "SettleOutcome":
        return cls(
            success=True, network=network, transaction=transaction, payer=payer, amount=amount
        )

    @classmethod
    def failed(
        cls,
        reason: ErrorReason,
        payer: Optional[AddressRef] = None,
        network: Optional[str] = None,
        transaction: Optional[str] = None,
    ) -> "SettleOutcome":
        return cls(
            success=False, network=network, transaction=transaction, payer=payer, reason=reason
        )

    @property
    def in_progress(self) -> bool:
        return self.reason == ErrorReason.SETTLEMENT_IN_PROGRESS


def classify(error_or_reason: Union[BaseException, ErrorReason]) -> tuple[ErrorReason, Severity]:
    """Map a failure onto its wire reason and severity.

    Exceptions outside the facilitator taxonomy are infrastructure faults.
    """
    if isinstance(error_or_reason, ErrorReason):
        reason = error_or_reason
    elif isinstance(error_or_reason, FacilitatorError):
        reason = error_or_reason.reason
    else:
        reason = ErrorReason.CONTRACT_CALL
    return reason, severity_of(reason)


def http_status_for(outcome: Union[VerifyOutcome, SettleOutcome]) -> int:
    """200 for every classified outcome, 400 for infrastructure faults"""
    if outcome.reason is not None and outcome.reason in INFRASTRUCTURE_REASONS:
        return HTTP_BAD_REQUEST
    return HTTP_OK


def _render(address: Optional[AddressRef]) -> Optional[str]:
    return str(address) if address is not None else None


def to_verify_response(outcome: VerifyOutcome) -> VerifyResponse:
    return VerifyResponse(
        isValid=outcome.is_valid,
        payer=_render(outcome.payer),
        invalidReason=outcome.reason.value if outcome.reason else None,
        invalidMessage=outcome.detail,
    )


def to_settle_response(outcome: SettleOutcome) -> SettleResponse:
    return SettleResponse(
        success=outcome.success,
        transaction=outcome.transaction,
        network=outcome.network,
        payer=_render(outcome.payer),
        amount=str(outcome.amount) if outcome.amount is not None else None,
        errorReason=outcome.reason.value if outcome.reason else None,
    )
