"""
Authorization validity window check
"""

from x402_facilitator.config import MAX_CLOCK_SKEW_SECONDS
from x402_facilitator.exceptions import ConfigurationError, InvalidTimingError
from x402_facilitator.models import PaymentAuthorization


class TimingGuard:
    """Enforces the half-open window ``valid_after - skew <= now < valid_before``.

    The skew only widens the lower bound; an authorization is never accepted
    at or after its ``valid_before``.
    """

    def __init__(self, skew_seconds: int = 0) -> None:
        if not 0 <= skew_seconds <= MAX_CLOCK_SKEW_SECONDS:
            raise ConfigurationError(
                f"clock skew must be within [0, {MAX_CLOCK_SKEW_SECONDS}], got {skew_seconds}"
            )
        self._skew = skew_seconds

    @property
    def skew_seconds(self) -> int:
        return self._skew

    def check(self, authorization: PaymentAuthorization, now: int) -> None:
        """
        Raises:
            InvalidTimingError: If *now* is outside the authorization window
        """
        if now < authorization.valid_after - self._skew:
            raise InvalidTimingError(
                f"authorization not valid before {authorization.valid_after} (now {now})",
                payer=authorization.payer,
            )
        if now >= authorization.valid_before:
            raise InvalidTimingError(
                f"authorization expired at {authorization.valid_before} (now {now})",
                payer=authorization.payer,
            )
