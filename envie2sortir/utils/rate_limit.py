import time
from collections import deque
from typing import Deque, Dict, Optional

from fastapi import Request


class RateLimiter:
    """Limiteur en mémoire à fenêtre glissante, par clé (IP).

    Les clés sans requête dans la fenêtre sont purgées au plus une fois par fenêtre.
    """

    def __init__(self, max_requests: int, window_seconds: float):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = 0.0

    def _sweep(self, now: float):
        stale = [key for key, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_seconds]
        for key in stale:
            del self._hits[key]
        self._last_sweep = now

    def is_allowed(self, key: str, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else now
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)

        hits = self._hits.setdefault(key, deque())
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        if len(hits) >= self.max_requests:
            return False
        hits.append(now)
        return True

    @property
    def tracked_keys(self) -> int:
        return len(self._hits)

    def reset(self):
        self._hits.clear()
        self._last_sweep = 0.0


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "anonymous"
