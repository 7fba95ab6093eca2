import threading
import time
from collections import defaultdict, deque

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

WINDOW_SECONDS = 60


class InMemoryRateLimiter:
    def __init__(self, clock=time.monotonic):
        # key -> deque[timestamps]
        self._hits = defaultdict(deque)
        self._lock = threading.Lock()
        self._clock = clock

    def allow(self, key: str, limit: int, window_seconds: int = WINDOW_SECONDS) -> bool:
        now = self._clock()
        with self._lock:
            q = self._hits[key]
            while q and (now - q[0]) >= window_seconds:
                q.popleft()
            if len(q) >= limit:
                return False
            q.append(now)
            self._evict_idle(now, window_seconds)
            return True

    def _evict_idle(self, now: float, window_seconds: int) -> None:
        # Drop clients whose newest hit is outside the window.
        idle = [k for k, q in self._hits.items() if not q or (now - q[-1]) >= window_seconds]
        for k in idle:
            del self._hits[k]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, limit: int, limiter: InMemoryRateLimiter | None = None):
        super().__init__(app)
        self.limit = limit
        self.limiter = limiter or InMemoryRateLimiter()

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        if not self.limiter.allow(client_ip, self.limit):
            return JSONResponse(status_code=429, content={"detail": "RATE_LIMITED"})
        return await call_next(request)
