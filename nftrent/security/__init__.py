from .context import SecurityContext
from .monitor import (
    SecurityEvent,
    SecurityEventLog,
    SecurityEventType,
    SecuritySeverity,
    current_user_id,
)
from .rate_limiter import RateLimiter, RateLimitResult
from .validation import (
    ValidationResult,
    sanitize_text_input,
    validate_mint_address,
    validate_numeric_range,
    validate_secure_url,
)

__all__ = [
    "SecurityContext",
    "SecurityEvent",
    "SecurityEventLog",
    "SecurityEventType",
    "SecuritySeverity",
    "current_user_id",
    "RateLimiter",
    "RateLimitResult",
    "ValidationResult",
    "sanitize_text_input",
    "validate_mint_address",
    "validate_numeric_range",
    "validate_secure_url",
]
