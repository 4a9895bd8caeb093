from typing import Any

from nftrent.security.monitor import SecurityEventLog
from nftrent.security.rate_limiter import RateLimiter
from nftrent.security.validation import ValidationResult
from nftrent.services.exceptions import RateLimited, ValidationError


class SecurityContext:
    """
    Rate limiter and security event log shared by the lifecycle services.

    One instance per application (stored on ``app.state``) or per test, so the
    counters and the event buffer can be inspected and reset independently.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter | None = None,
        event_log: SecurityEventLog | None = None,
    ) -> None:
        self.rate_limiter = rate_limiter or RateLimiter()
        self.event_log = event_log or SecurityEventLog()

    def enforce_rate_limit(
        self,
        operation: str,
        scope: str | None,
        max_attempts: int,
        window_ms: int,
    ) -> int:
        """
        Consumes one attempt of ``operation`` for ``scope``.

        :return: attempts left in the current window.
        :raises RateLimited: when the window is exhausted, after recording a
            ``rate_limit_exceeded`` event.
        """
        key = f"{operation}:{scope}" if scope else operation
        result = self.rate_limiter.check_and_consume(key, max_attempts, window_ms)
        if not result.allowed:
            self.event_log.log_rate_limit_exceeded(operation, max_attempts)
            raise RateLimited(operation, max_attempts)
        return result.remaining

    def require_valid(self, field: str, result: ValidationResult, value: Any) -> None:
        if result.valid:
            return
        reason = result.error or f"Invalid {field}"
        self.event_log.log_validation_error(field, reason, value)
        raise ValidationError(field, reason)

    def reject(self, field: str, reason: str, value: Any) -> None:
        self.require_valid(field, ValidationResult(False, reason), value)

    def reset(self) -> None:
        self.rate_limiter.reset()
        self.event_log.clear()
