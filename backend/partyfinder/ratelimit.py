import threading
import time
from functools import wraps
from typing import Callable, Dict, Tuple

from flask import current_app, jsonify, request


class FixedWindowLimiter:
    def __init__(self, window_sec: float, max_hits: int, clock: Callable[[], float] = time.monotonic):
        self.window_sec = window_sec
        self.max_hits = max_hits
        self._clock = clock
        self._hits: Dict[str, Tuple[int, float]] = {}
        self._next_prune = 0.0
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._hits)

    def hit(self, key: str) -> bool:
        """Count one request for key. Returns False once the window is spent."""
        now = self._clock()
        with self._lock:
            if now >= self._next_prune:
                # drop closed windows at most once per window
                self._hits = {k: v for k, v in self._hits.items() if v[1] > now}
                self._next_prune = now + self.window_sec
            count, reset_at = self._hits.get(key, (0, 0.0))
            if reset_at <= now:
                self._hits[key] = (1, now + self.window_sec)
                return True
            count += 1
            self._hits[key] = (count, reset_at)
            return count <= self.max_hits


def rate_limit(window_sec: float, max_hits: int):
    limiter = FixedWindowLimiter(window_sec, max_hits)

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if current_app.config.get('RATE_LIMIT_ENABLED', True):
                key = f"{request.remote_addr}:{request.path}"
                if not limiter.hit(key):
                    current_app.logger.info(f"[ratelimit] {key} over {max_hits}/{window_sec}s")
                    return jsonify({'error': 'RATE_LIMITED'}), 429
            return view(*args, **kwargs)
        wrapped.limiter = limiter
        return wrapped
    return decorator
