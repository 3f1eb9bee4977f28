"""
Payment requirements matcher
"""

from x402_facilitator.exceptions import (
    InsufficientValueError,
    NetworkMismatchError,
    ReceiverMismatchError,
    SchemeMismatchError,
    UnsupportedNetworkError,
)
from x402_facilitator.models import PaymentAuthorization, PaymentTerms
from x402_facilitator.registry import SupportedRegistry


def match_requirements(
    requirements: PaymentTerms,
    authorization: PaymentAuthorization,
    registry: SupportedRegistry,
) -> None:
    """Check that *authorization* pays what *requirements* ask for.

    Checks run in a fixed order and the first failure is raised:
    scheme, network, recipient, amount.

    Raises:
        SchemeMismatchError: Schemes differ, or the scheme is not offered on the network
        UnsupportedNetworkError: The required network is not served
        NetworkMismatchError: The payload targets another network
        ReceiverMismatchError: The authorization pays someone else
        InsufficientValueError: The authorized amount is below the required amount
    """
    payer = authorization.payer

    if authorization.scheme != requirements.scheme:
        raise SchemeMismatchError(
            f"payload scheme {authorization.scheme!r} != required {requirements.scheme!r}",
            payer=payer,
        )

    if not registry.supports_network(requirements.network):
        raise UnsupportedNetworkError(
            f"network {requirements.network!r} is not supported", payer=payer
        )
    if authorization.network != requirements.network:
        raise NetworkMismatchError(
            f"payload network {authorization.network!r} != required {requirements.network!r}",
            payer=payer,
        )
    if not registry.is_supported(requirements.scheme, requirements.network):
        raise SchemeMismatchError(
            f"scheme {requirements.scheme!r} is not offered on {requirements.network!r}",
            payer=payer,
        )

    if authorization.recipient != requirements.pay_to:
        raise ReceiverMismatchError(
            f"authorization pays {authorization.recipient}, expected {requirements.pay_to}",
            payer=payer,
        )

    if authorization.amount < requirements.min_amount:
        raise InsufficientValueError(
            f"authorized {authorization.amount} < required {requirements.min_amount}",
            payer=payer,
        )
