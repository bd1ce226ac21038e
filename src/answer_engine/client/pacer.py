# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Proactive request pacing.

With the default min_interval of 0 the pacer never waits and pacing is purely
reactive (driven by 429s in the executor).
"""

import logging
import time
from typing import Callable, Optional

from ..core.constants import DEFAULT_MIN_REQUEST_INTERVAL
from ..core.types import StatusLevel
from ..core.waiting import Waiter

lib_logger = logging.getLogger("answer_engine")


class RatePacer:
    """
    Enforces a minimum spacing between outbound requests.

    The clock is injectable so tests can drive time by hand.
    """

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_REQUEST_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval = min_interval
        self.last_request_timestamp: Optional[float] = None
        self._clock = clock

    def remaining(self) -> float:
        """Seconds until the next request may go out."""
        if self.last_request_timestamp is None or self.min_interval <= 0:
            return 0.0
        elapsed = self._clock() - self.last_request_timestamp
        return max(0.0, self.min_interval - elapsed)

    async def acquire(self, waiter: Waiter) -> None:
        """
        Wait out the remainder of the interval, then stamp the request time.

        Raises:
            RequestCancelledError: Caller cancelled during the pacing wait.
        """
        wait_time = self.remaining()
        if wait_time > 0:
            lib_logger.debug(f"Pacing request. Waiting {wait_time:.2f}s")
            await waiter.report(
                f"Pacing request... ({wait_time:.1f}s)",
                StatusLevel.ACTION,
                stage="pacing",
            )
            await waiter.wait(wait_time, stage="pacing")

        self.last_request_timestamp = self._clock()
