"""Circuit breaker guarding calls to the upstream community provider.

After ``failure_threshold`` consecutive upstream failures the breaker
opens: the provider reports itself disconnected and every resolve/fetch
fails fast with ``CircuitOpenError`` for ``recovery_timeout`` seconds.
The first call after that window is a probe; its outcome closes or
re-opens the breaker.

Client errors (a 404 for one bad invite) are filtered out by the
``is_failure`` predicate so a single broken registry entry cannot take
the whole provider offline.
"""

import enum
import time
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from community_pulse.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CircuitState(enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Upstream calls are suspended."""

    def __init__(self, name: str, retry_after: float, last_error: str | None):
        self.retry_after = retry_after
        self.last_error = last_error
        detail = f"; last error: {last_error}" if last_error else ""
        super().__init__(f"{name} suspended for another {retry_after:.1f}s{detail}")


class UpstreamBreaker:
    """
    Consecutive-failure breaker for one provider.

    Args:
        name: Provider name, used in logs and error messages.
        failure_threshold: Consecutive upstream failures before opening.
        recovery_timeout: Seconds to stay open before letting a probe through.
        is_failure: Decides whether an exception says anything about
            upstream health. Defaults to every exception.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        is_failure: Callable[[BaseException], bool] | None = None,
    ) -> None:
        self.name = name
        self._threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._is_failure = is_failure or (lambda exc: True)
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at: float | None = None
        self.last_error: str | None = None

    @property
    def state(self) -> CircuitState:
        if self._state is CircuitState.OPEN and self.retry_after == 0:
            return CircuitState.HALF_OPEN
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state is CircuitState.OPEN

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    @property
    def retry_after(self) -> float:
        """Seconds until a probe is allowed (0 when not open)."""
        if self._state is not CircuitState.OPEN or self._opened_at is None:
            return 0.0
        return max(0.0, self._recovery_timeout - (time.monotonic() - self._opened_at))

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        """
        Run one upstream call through the breaker.

        Raises:
            CircuitOpenError: The breaker is open and the recovery window
                has not elapsed.
        """
        if self.state is CircuitState.OPEN:
            raise CircuitOpenError(self.name, self.retry_after, self.last_error)
        probing = self.state is CircuitState.HALF_OPEN

        try:
            result = await fn(*args)
        except Exception as exc:
            if self._is_failure(exc):
                self._on_failure(exc, probing)
            raise

        self._on_success(probing)
        return result

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = None
        self.last_error = None
        get_metrics().set_upstream_connected(True)

    def _on_success(self, probing: bool) -> None:
        if probing:
            logger.info("Upstream recovered", provider=self.name)
        if self._state is not CircuitState.CLOSED:
            get_metrics().set_upstream_connected(True)
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = None

    def _on_failure(self, exc: BaseException, probing: bool) -> None:
        self._failures += 1
        self.last_error = f"{type(exc).__name__}: {exc}"

        if probing or self._failures >= self._threshold:
            self._state = CircuitState.OPEN
            self._opened_at = time.monotonic()
            get_metrics().set_upstream_connected(False)
            logger.warning(
                "Upstream suspended",
                provider=self.name,
                consecutive_failures=self._failures,
                probe=probing,
                retry_after_seconds=self._recovery_timeout,
                error=self.last_error,
            )
