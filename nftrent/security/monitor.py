"""
In-memory security event log.

Keeps the most recent events in a bounded buffer so rejected operations,
throttled callers and auth failures leave an auditable trail that the
security endpoints can query.
"""

import logging
import threading
from collections import deque
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger("nftrent.security")

EVENT_LOG_CAPACITY = 100

# authenticated user id of the request being served
current_user_id: ContextVar[Optional[str]] = ContextVar(
    "current_user_id", default=None
)


class SecurityEventType(str, Enum):
    AUTH_FAILURE = "auth_failure"
    VALIDATION_ERROR = "validation_error"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    SUSPICIOUS_INPUT = "suspicious_input"


class SecuritySeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SecurityEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: SecurityEventType
    severity: SecuritySeverity
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
    user_id: str | None = None


class SecurityEventLog:
    def __init__(
        self,
        capacity: int = EVENT_LOG_CAPACITY,
        user_id_supplier: Callable[[], Optional[str]] = current_user_id.get,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        # deque drops the oldest entry once maxlen is reached
        self._events: deque[SecurityEvent] = deque(maxlen=capacity)
        self._user_id_supplier = user_id_supplier
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._events.maxlen

    def __len__(self) -> int:
        return len(self._events)

    def record(
        self,
        event_type: SecurityEventType,
        severity: SecuritySeverity,
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> SecurityEvent:
        event = SecurityEvent(
            type=event_type,
            severity=severity,
            message=message,
            metadata=dict(metadata or {}),
            timestamp=self._clock(),
            user_id=self._user_id_supplier(),
        )
        with self._lock:
            self._events.append(event)

        logger.warning(
            "[Security Monitor] %s (%s) user=%s: %s %s",
            event.type.value,
            event.severity.value,
            event.user_id,
            event.message,
            event.metadata,
        )
        return event

    def _select(
        self,
        event_type: Optional[SecurityEventType] = None,
        user_id: Optional[str] = None,
    ) -> list[SecurityEvent]:
        with self._lock:
            events = list(self._events)
        if event_type is not None:
            events = [event for event in events if event.type == event_type]
        if user_id is not None:
            events = [event for event in events if event.user_id == user_id]
        return events

    @staticmethod
    def _most_recent(
        events: list[SecurityEvent], limit: Optional[int]
    ) -> list[SecurityEvent]:
        if limit is None:
            return events
        if limit <= 0:
            return []
        return events[-limit:]

    def query(
        self, limit: Optional[int] = None, user_id: Optional[str] = None
    ) -> list[SecurityEvent]:
        """
        Events oldest to newest, only the most recent ``limit`` when given.

        ``user_id`` restricts the result to events recorded for that user.
        """
        return self._most_recent(self._select(user_id=user_id), limit)

    def query_by_type(
        self,
        event_type: SecurityEventType,
        limit: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> list[SecurityEvent]:
        return self._most_recent(self._select(event_type, user_id), limit)

    def counts(self, user_id: Optional[str] = None) -> dict[str, int]:
        events = self._select(user_id=user_id)
        counts = {"all": len(events)}
        for event_type in SecurityEventType:
            counts[event_type.value] = sum(1 for e in events if e.type == event_type)
        return counts

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def log_auth_failure(
        self, reason: str, metadata: Optional[Mapping[str, Any]] = None
    ) -> SecurityEvent:
        return self.record(
            SecurityEventType.AUTH_FAILURE,
            SecuritySeverity.HIGH,
            f"Authentication failure: {reason}",
            metadata,
        )

    def log_validation_error(
        self, field: str, error: str, value: Any = None
    ) -> SecurityEvent:
        text = None if value is None else str(value)
        return self.record(
            SecurityEventType.VALIDATION_ERROR,
            SecuritySeverity.MEDIUM,
            f"Validation error in {field}: {error}",
            {
                "field": field,
                "error": error,
                "has_value": bool(text),
                "value_length": len(text) if text is not None else None,
            },
        )

    def log_rate_limit_exceeded(self, resource: str, attempts: int) -> SecurityEvent:
        return self.record(
            SecurityEventType.RATE_LIMIT_EXCEEDED,
            SecuritySeverity.HIGH,
            f"Rate limit exceeded for {resource}",
            {"resource": resource, "attempts": attempts},
        )

    def log_suspicious_input(
        self, field: str, reason: str, value: Optional[str] = None
    ) -> SecurityEvent:
        lowered = value.lower() if value else ""
        return self.record(
            SecurityEventType.SUSPICIOUS_INPUT,
            SecuritySeverity.MEDIUM,
            f"Suspicious input detected in {field}: {reason}",
            {
                "field": field,
                "reason": reason,
                "input_length": len(value) if value is not None else None,
                "contains_script": "script" in lowered,
                "contains_javascript": "javascript:" in lowered,
            },
        )
