"""
Clock collaborator used by the timing guard and the settlement orchestrator
"""

import time
from typing import Protocol

from x402_facilitator.exceptions import ClockError


class Clock(Protocol):
    """Source of the current unix time in seconds"""

    def now(self) -> int:
        """Return the current unix timestamp.

        Raises:
            ClockError: If the time cannot be determined
        """
        ...


class SystemClock:
    """Wall-clock time of the host"""

    def now(self) -> int:
        try:
            value = time.time()
        except OSError as e:
            raise ClockError(f"System clock unavailable: {e}") from e
        if value <= 0:
            raise ClockError(f"System clock returned an invalid timestamp: {value}")
        return int(value)
