"""
Dispatcher configuration for egress route backoff and request retries.

All durations are in seconds.
"""

from dataclasses import dataclass

from forum_relay.config.settings import Settings


@dataclass
class DispatcherConfig:
    """
    Configuration for route cooldown and fetch retry behavior.

    Attributes:
        idle_delay: Cooldown before a healthy route is handed out again.

        base_error_wait: Backoff applied to a route after its first failure.
            Each further consecutive failure multiplies the previous backoff
            by error_multiplier.

        max_error_wait: Upper bound on any route backoff, including one
            requested by a rate-limit Retry-After hint.

        request_timeout: Hard timeout for a single attempt. A timed-out
            attempt counts as a failure of the route it ran on.

        max_attempts: Attempts per logical request, possibly across routes.
    """

    idle_delay: float = 1.0
    base_error_wait: float = 30.0
    error_multiplier: float = 2.0
    max_error_wait: float = 300.0
    request_timeout: float = 120.0
    max_attempts: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> "DispatcherConfig":
        return cls(
            idle_delay=settings.dispatcher_idle_delay,
            base_error_wait=settings.dispatcher_error_wait,
            error_multiplier=settings.dispatcher_error_multiplier,
            max_error_wait=settings.dispatcher_max_error_wait,
            request_timeout=settings.dispatcher_timeout,
            max_attempts=settings.dispatcher_max_attempts,
        )

    def next_backoff(self, previous: float | None, retry_after: float = 0.0) -> float:
        """
        Calculate a route's backoff after a failed attempt.

        Formula: clamp(previous * multiplier or base, retry_after, max_error_wait)

        Args:
            previous: The route's current backoff, None when healthy
            retry_after: Minimum wait requested by the server (rate limiting)

        Returns:
            New backoff in seconds
        """
        if previous is None:
            backoff = self.base_error_wait
        else:
            backoff = previous * self.error_multiplier

        return min(max(backoff, retry_after), self.max_error_wait)
