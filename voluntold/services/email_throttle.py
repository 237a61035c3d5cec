import time
from collections.abc import Callable
from functools import lru_cache

from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from voluntold.core.config import get_settings

_MIN_WAIT_SECONDS = 0.01


class SendThrottle:
    """Paces bulk email sends to the provider's published rate limit."""

    def __init__(
        self,
        rate: str,
        *,
        key: str = "outbound-email",
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.item = parse(rate)
        self.key = key
        self._limiter = MovingWindowRateLimiter(MemoryStorage())
        self._sleep = sleep

    def wait(self) -> None:
        while not self._limiter.hit(self.item, self.key):
            reset_time = self._limiter.get_window_stats(self.item, self.key)[0]
            self._sleep(max(reset_time - time.time(), _MIN_WAIT_SECONDS))


@lru_cache
def _throttle() -> SendThrottle:
    return SendThrottle(get_settings().email_rate_limit)


def get_send_throttle() -> SendThrottle:
    return _throttle()
