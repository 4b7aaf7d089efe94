"""Reconnect retry policy."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """How long to wait before reconnect attempt ``n`` (1-based).

    ``max_attempts=None`` retries forever. With the default ``backoff_factor``
    of 1.0 the delay is fixed; larger factors grow it geometrically up to
    ``max_delay_sec``.
    """

    delay_sec: float = 5.0
    max_attempts: int | None = None
    backoff_factor: float = 1.0
    max_delay_sec: float = 60.0

    def __post_init__(self) -> None:
        if self.delay_sec < 0:
            raise ValueError("delay_sec must be >= 0")
        if self.backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1.0")
        if self.max_attempts is not None and self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0 or None")

    def delay_for(self, attempt: int) -> float | None:
        """Return the wait before ``attempt``, or None when retries are exhausted."""
        if attempt < 1:
            raise ValueError("attempt is 1-based")
        if self.max_attempts is not None and attempt > self.max_attempts:
            return None
        delay = self.delay_sec * (self.backoff_factor ** (attempt - 1))
        return min(delay, max(self.max_delay_sec, self.delay_sec))

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        """Build the WebSocket reconnect policy (0 attempts in settings = unbounded)."""
        attempts = int(settings.ws_max_reconnect_attempts)
        return cls(
            delay_sec=float(settings.ws_reconnect_delay_sec),
            max_attempts=attempts if attempts > 0 else None,
        )
