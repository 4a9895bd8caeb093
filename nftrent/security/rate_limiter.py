import threading
import time
from dataclasses import dataclass
from typing import Callable, NamedTuple, Optional


class RateLimitResult(NamedTuple):
    allowed: bool
    remaining: int


@dataclass
class RateLimitRecord:
    count: int
    # monotonic clock reading in milliseconds
    window_reset_at: float


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class RateLimiter:
    """
    Fixed-window attempt counter keyed by an operation-scoped string.

    Each key gets ``max_attempts`` per window of ``window_ms``; the counter
    resets at the first attempt after the window elapsed. Bursts straddling a
    window boundary can let up to ``2 * max_attempts`` attempts through, which
    is fine for abuse deterrence but is not a hard quota.

    Records live in process memory only and are never persisted.
    """

    def __init__(self, clock: Callable[[], float] = monotonic_ms) -> None:
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def check_and_consume(
        self, key: str, max_attempts: int = 5, window_ms: int = 60000
    ) -> RateLimitResult:
        with self._lock:
            now = self._clock()
            record = self._records.get(key)

            if record is None or now > record.window_reset_at:
                self._records[key] = RateLimitRecord(
                    count=1, window_reset_at=now + window_ms
                )
                return RateLimitResult(True, max_attempts - 1)

            if record.count >= max_attempts:
                return RateLimitResult(False, 0)

            record.count += 1
            return RateLimitResult(True, max_attempts - record.count)

    def get_record(self, key: str) -> Optional[RateLimitRecord]:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            return RateLimitRecord(record.count, record.window_reset_at)

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._records.clear()
            else:
                self._records.pop(key, None)
