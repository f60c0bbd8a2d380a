"""Retry backoff policy."""

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential delay before a failed job becomes eligible again.

    ``delay(n) = base * 2^n``, capped at ``ceiling``. With the defaults
    (1 minute, 24 hours) the cap is first reached at n = 11, above the
    largest accepted ``max_attempts``, so every real retry delay is strictly
    larger than the previous one.
    """

    base: timedelta = timedelta(minutes=1)
    ceiling: timedelta = timedelta(hours=24)
    factor: int = 2

    def delay(self, attempt_count: int) -> timedelta:
        if attempt_count < 0:
            raise ValueError("attempt_count must be >= 0")

        ceiling_seconds = self.ceiling.total_seconds()
        seconds = self.base.total_seconds()
        # Stop multiplying once past the ceiling; large exponents would overflow timedelta
        for _ in range(attempt_count):
            seconds *= self.factor
            if seconds >= ceiling_seconds:
                return self.ceiling
        return timedelta(seconds=min(seconds, ceiling_seconds))

    @classmethod
    def from_settings(cls, settings) -> "BackoffPolicy":
        return cls(
            base=timedelta(seconds=settings.BACKOFF_BASE_SECONDS),
            ceiling=timedelta(seconds=settings.BACKOFF_CEILING_SECONDS),
        )


DEFAULT_BACKOFF = BackoffPolicy()
