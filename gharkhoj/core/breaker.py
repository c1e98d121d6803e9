import logging
import time
from typing import Any, Awaitable, Callable

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class CircuitOpenError(ConnectionError):
    pass


class CircuitBreaker:
    """Short-circuits calls to a failing backend.

    Only unexpected errors count as failures. ``HTTPException`` and the
    ``passthrough`` exception types are client outcomes: they are re-raised
    without touching the failure count.
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        base_recovery_time: int = 10,
        max_recovery_time: int = 60,
        passthrough: tuple[type[BaseException], ...] = (),
    ):
        self.name = name
        self.failure_count = 0
        self.failure_threshold = failure_threshold
        self.base_recovery_time = base_recovery_time
        self.max_recovery_time = max_recovery_time
        self.passthrough = (HTTPException, *passthrough)
        self.last_failure_time = 0.0
        self.state = "CLOSED"

    @property
    def current_recovery_time(self):
        return min(
            self.base_recovery_time
            * (2 ** max(self.failure_count - self.failure_threshold, 0)),
            self.max_recovery_time,
        )

    def _open(self):
        self.state = "OPEN"
        self.last_failure_time = time.monotonic()
        logger.warning(
            f"Circuit '{self.name}' opened after {self.failure_count} failures."
        )

    def _half_open(self):
        self.state = "HALF_OPEN"
        logger.info(f"Circuit '{self.name}' half-open: testing...")

    def _close(self):
        if self.state != "CLOSED":
            logger.info(f"Circuit '{self.name}' closed: stable again.")
        self.state = "CLOSED"
        self.failure_count = 0

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        now = time.monotonic()

        if self.state == "OPEN":
            cooldown = self.current_recovery_time
            elapsed = now - self.last_failure_time
            if elapsed < cooldown:
                raise CircuitOpenError(
                    f"CircuitBreaker '{self.name}': still open, retry after {cooldown - elapsed:.1f}s"
                )
            self._half_open()

        try:
            result = await func(*args, **kwargs)
        except self.passthrough:
            if self.state == "HALF_OPEN":
                self._close()
            raise
        except Exception as e:
            self.failure_count += 1
            logger.error(
                f"CircuitBreaker '{self.name}' call failed ({self.failure_count}): {e}"
            )
            if self.state == "HALF_OPEN" or self.failure_count >= self.failure_threshold:
                self._open()
            raise

        self._close()
        return result


breaker = CircuitBreaker(name="global")
