from partyfinder.ratelimit import FixedWindowLimiter


class Ticker:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_window_allows_max_hits_then_resets():
    clock = Ticker()
    limiter = FixedWindowLimiter(10, 2, clock=clock)
    assert [limiter.hit('a') for _ in range(3)] == [True, True, False]

    clock.now += 10
    assert limiter.hit('a') is True


def test_closed_windows_are_dropped():
    clock = Ticker()
    limiter = FixedWindowLimiter(10, 5, clock=clock)
    for i in range(50):
        limiter.hit(f'10.0.0.{i}:/api/party/join')
    assert len(limiter) == 50

    clock.now += 11
    limiter.hit('10.0.0.99:/api/party/join')
    assert len(limiter) == 1
