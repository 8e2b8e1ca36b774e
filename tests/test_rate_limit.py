from santa.services.rate_limit import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_rate_limiter_blocks_after_limit():
    clock = FakeClock()
    limiter = RateLimiter(max_calls=2, period_seconds=10, clock=clock)

    assert limiter.allow("1:draw").allowed
    assert limiter.allow("1:draw").allowed
    blocked = limiter.allow("1:draw")
    assert not blocked.allowed
    assert blocked.retry_after == 10


def test_rate_limiter_keys_are_independent():
    limiter = RateLimiter(max_calls=1, period_seconds=10, clock=FakeClock())
    assert limiter.allow("1:draw").allowed
    assert limiter.allow("2:draw").allowed
    assert limiter.allow("1:list").allowed


def test_rate_limiter_window_slides():
    clock = FakeClock()
    limiter = RateLimiter(max_calls=1, period_seconds=10, clock=clock)
    assert limiter.allow("1:join").allowed
    clock.now += 4
    assert limiter.allow("1:join").retry_after == 6
    clock.now += 6
    assert limiter.allow("1:join").allowed
