"""
Request guards for the stance API.

One middleware applies, in order: the bearer token gate, the per-client rate
limit and the request body size limit. Health routes and CORS preflights skip
all three. Settings come from ``config`` unless passed to
``configure_request_guards``.
"""

import logging
import math
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from stance_backend import config

logger = logging.getLogger(__name__)

HEALTH_PATHS = frozenset({
    "/health",
    "/api/takes/health",
    "/api/stance-card/health",
    "/api/votes/health",
})

MUTATING_METHODS = frozenset({"POST", "PUT", "DELETE", "PATCH"})


def _normalize_path(path: str) -> str:
    return path.rstrip("/") if path != "/" else path


def _is_cors_preflight(request: Request) -> bool:
    return request.method == "OPTIONS" and "access-control-request-method" in request.headers


def _bearer_token(auth_header: Optional[str]) -> Optional[str]:
    if not auth_header:
        return None
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token


class SlidingWindowLimiter:
    """
    Per-key hit log over a sliding window.

    Keys whose window has emptied are dropped, either when they are next hit
    or by a sweep that runs at most once per window.
    """

    def __init__(self, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[Tuple[str, str], Deque[float]] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._hits)

    def _prune(self, key: Tuple[str, str], cutoff: float) -> Optional[Deque[float]]:
        hits = self._hits.get(key)
        if hits is None:
            return None
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self._hits[key]
            return None
        return hits

    def _sweep(self, now: float) -> None:
        cutoff = now - self.window_seconds
        for key in list(self._hits):
            self._prune(key, cutoff)
        self._last_sweep = now

    def hit(self, client: str, tier: str, limit: int) -> Tuple[bool, int]:
        """Record a hit unless ``limit`` is reached. Returns (allowed, count in window)."""
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)

        key = (client, tier)
        hits = self._prune(key, now - self.window_seconds)
        count = len(hits) if hits else 0
        if count >= limit:
            return False, count
        self._hits.setdefault(key, deque()).append(now)
        return True, count + 1


class RequestGuardMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        auth_token: Optional[str] = None,
        max_body_bytes: int = 16 * 1024,
        mutate_limit: int = 120,
        read_limit: int = 600,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.auth_token = auth_token
        self.max_body_bytes = max_body_bytes
        self.mutate_limit = mutate_limit
        self.read_limit = read_limit
        self.limiter = SlidingWindowLimiter(window_seconds, clock=clock)

    async def dispatch(self, request: Request, call_next: Callable):
        path = _normalize_path(request.url.path)
        if path in HEALTH_PATHS or _is_cors_preflight(request):
            return await call_next(request)

        if self.auth_token and _bearer_token(request.headers.get("authorization")) != self.auth_token:
            logger.warning("[AUTH] Rejected request to %s - invalid/missing token", path)
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing authorization token."},
                headers={"WWW-Authenticate": "Bearer"},
            )

        client = request.client.host if request.client else "unknown"
        if request.method in MUTATING_METHODS:
            tier, limit = "mutate", self.mutate_limit
        else:
            tier, limit = "read", self.read_limit
        allowed, count = self.limiter.hit(client, tier, limit)
        if not allowed:
            window = math.ceil(self.limiter.window_seconds)
            logger.warning(
                "[RATE LIMIT] %s exceeded %s tier limit (%d/%d) on %s %s",
                client, tier, count, limit, request.method, path,
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": f"Rate limit exceeded ({tier} tier: {limit} requests per {window}s)."},
                headers={"Retry-After": str(window)},
            )

        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                length = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    content={"detail": "Invalid Content-Length header."},
                )
            if length > self.max_body_bytes:
                logger.warning(
                    "[SECURITY] Rejected oversized request to %s (%d bytes, limit %d bytes)",
                    path, length, self.max_body_bytes,
                )
                return JSONResponse(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    content={"detail": f"Request body too large. Limit: {self.max_body_bytes} bytes."},
                )

        return await call_next(request)


def configure_request_guards(app, **overrides):
    """Add ``RequestGuardMiddleware`` to ``app``; keyword overrides win over ``config``."""
    settings = dict(
        auth_token=config.AUTH_TOKEN,
        max_body_bytes=config.MAX_BODY_BYTES,
        mutate_limit=config.RATE_LIMIT_MUTATE,
        read_limit=config.RATE_LIMIT_READ,
        window_seconds=config.RATE_LIMIT_WINDOW_SECONDS,
    )
    settings.update(overrides)
    app.add_middleware(RequestGuardMiddleware, **settings)

    token_status = "ENFORCED" if settings["auth_token"] else "DISABLED (AUTH_TOKEN not set)"
    logger.info(
        "[SECURITY] Request guards configured: auth %s, rate limits mutate=%d read=%d per %ss, body limit %d bytes",
        token_status, settings["mutate_limit"], settings["read_limit"],
        settings["window_seconds"], settings["max_body_bytes"],
    )
