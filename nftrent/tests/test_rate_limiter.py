import pytest

from nftrent.security.context import SecurityContext
from nftrent.security.monitor import SecurityEventType
from nftrent.security.rate_limiter import RateLimiter
from nftrent.services.exceptions import RateLimited


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(clock=clock)


def test_allows_max_attempts_then_denies(limiter: RateLimiter):
    results = [limiter.check_and_consume("k", 3, 60000) for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]


def test_denied_attempts_do_not_count(limiter: RateLimiter):
    for _ in range(5):
        limiter.check_and_consume("k", 2, 60000)

    assert limiter.get_record("k").count == 2


def test_window_resets_only_after_it_elapsed(limiter: RateLimiter, clock: FakeClock):
    limiter.check_and_consume("k", 1, 60000)

    # exactly at the reset time the window is still open
    clock.advance(60000)
    assert not limiter.check_and_consume("k", 1, 60000).allowed

    clock.advance(1)
    result = limiter.check_and_consume("k", 1, 60000)
    assert result.allowed
    assert result.remaining == 0
    assert limiter.get_record("k").window_reset_at == clock.now + 60000


def test_keys_are_independent(limiter: RateLimiter):
    assert limiter.check_and_consume("a", 1, 60000).allowed
    assert not limiter.check_and_consume("a", 1, 60000).allowed
    assert limiter.check_and_consume("b", 1, 60000).allowed


def test_reset_single_key_and_all(limiter: RateLimiter):
    limiter.check_and_consume("a", 1, 60000)
    limiter.check_and_consume("b", 1, 60000)

    limiter.reset("a")
    assert limiter.get_record("a") is None
    assert limiter.get_record("b") is not None

    limiter.reset()
    assert limiter.get_record("b") is None


def test_get_record_returns_a_copy(limiter: RateLimiter):
    limiter.check_and_consume("k", 5, 60000)
    record = limiter.get_record("k")
    record.count = 100

    assert limiter.get_record("k").count == 1


def test_enforce_rate_limit_records_event_and_raises(clock: FakeClock):
    security = SecurityContext(rate_limiter=RateLimiter(clock=clock))

    assert security.enforce_rate_limit("nft-rental-submit", "user-1", 2, 60000) == 1
    assert security.enforce_rate_limit("nft-rental-submit", "user-1", 2, 60000) == 0
    # another user has its own budget
    assert security.enforce_rate_limit("nft-rental-submit", "user-2", 2, 60000) == 1

    with pytest.raises(RateLimited) as exc_info:
        security.enforce_rate_limit("nft-rental-submit", "user-1", 2, 60000)

    assert exc_info.value.resource == "nft-rental-submit"
    assert exc_info.value.max_attempts == 2

    events = security.event_log.query_by_type(SecurityEventType.RATE_LIMIT_EXCEEDED)
    assert len(events) == 1
    assert events[0].metadata == {"resource": "nft-rental-submit", "attempts": 2}
