"""Connection state tracking for the detected language server.

Counts consecutive quota fetch failures so the dashboard can discard a stale
server handle and re-run detection, the same way a circuit breaker opens after
repeated failures.
"""

import time
from typing import Optional

from .logging import create_contextual_logger


class ConnectionState:
    """Tracks fetch health for the currently held server handle."""

    def __init__(self, max_failures: int = 3) -> None:
        if max_failures < 1:
            raise ValueError("max_failures must be at least 1")
        self.max_failures = max_failures
        self.logger = create_contextual_logger(__name__, service="connection_state")

        self._consecutive_failures = 0
        self._last_failure_time: Optional[float] = None
        self._last_success_time: Optional[float] = None

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def mark_success(self) -> None:
        """Record a successful fetch."""
        if self._consecutive_failures > 0:
            self.logger.info(
                "Connection stabilized after failures",
                recovered_from_failures=self._consecutive_failures,
            )
        self._consecutive_failures = 0
        self._last_success_time = time.time()

    def mark_failure(self) -> None:
        """Record a failed fetch."""
        self._consecutive_failures += 1
        self._last_failure_time = time.time()

        if self.should_redetect():
            self.logger.warning(
                "Too many consecutive fetch failures, server will be re-detected",
                consecutive_failures=self._consecutive_failures,
            )
        else:
            self.logger.debug(
                "Fetch failure recorded",
                consecutive_failures=self._consecutive_failures,
                failures_until_redetect=self.max_failures - self._consecutive_failures,
            )

    def should_redetect(self) -> bool:
        return self._consecutive_failures >= self.max_failures

    def reset(self) -> None:
        """Forget failure history, used after a new handle is detected."""
        self._consecutive_failures = 0
        self._last_failure_time = None

    def get_connection_info(self) -> dict:
        return {
            "is_healthy": self._consecutive_failures == 0,
            "consecutive_failures": self._consecutive_failures,
            "should_redetect": self.should_redetect(),
            "last_success_time": self._last_success_time,
            "last_failure_time": self._last_failure_time,
        }
