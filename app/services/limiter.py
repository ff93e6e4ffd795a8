import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional
from fastapi import Request, HTTPException
from app.core.config import settings

WINDOW_SECONDS = 60


class RateLimiter:
    """
    Caps attempts per client IP for one guessable operation (passwords,
    six-digit entry codes) over a sliding one-minute window.
    """

    def __init__(self, scope: str, limit: Optional[int] = None):
        self.scope = scope
        self._limit = limit
        self._attempts: Dict[str, Deque[float]] = defaultdict(deque)

    @property
    def limit(self) -> int:
        return self._limit if self._limit is not None else settings.MAX_REQUESTS_PER_MINUTE

    def check(self, request: Request):
        if not settings.RATE_LIMIT_ENABLED:
            return

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        attempts = self._attempts[client_ip]
        while attempts and now - attempts[0] >= WINDOW_SECONDS:
            attempts.popleft()

        if len(attempts) >= self.limit:
            retry_after = int(WINDOW_SECONDS - (now - attempts[0])) + 1
            raise HTTPException(
                status_code=429,
                detail=f"Too many {self.scope} attempts. Please wait.",
                headers={"Retry-After": str(retry_after)},
            )
        attempts.append(now)

    def reset(self):
        self._attempts.clear()


login_limiter = RateLimiter("login")
entry_code_limiter = RateLimiter("entry code")
