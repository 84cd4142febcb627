"""
API key guard for the admin routes.

Keys come from X-API-Key or an Authorization Bearer token and are checked
against API_KEYS. With DEV_MODE on and no keys configured the guard is open.
"""

import secrets
import time
from collections import deque
from threading import Lock
from typing import Deque, Dict, Optional

from fastapi import Depends, Header, HTTPException, Request

from testgen.config import config
from testgen.utils.logging import api_logger as logger


DEV_PRINCIPAL = "dev"


class SlidingWindowLimiter:
    """Per-key request limit over a rolling window of `window_seconds`."""

    def __init__(self, window_seconds: float = 60.0):
        self.window_seconds = window_seconds
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = Lock()

    def hit(self, key: str, limit: int) -> Optional[float]:
        """
        Record a request for `key`.

        Returns:
            None if allowed, otherwise seconds until the oldest hit leaves
            the window
        """
        now = time.monotonic()
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= now - self.window_seconds:
                hits.popleft()
            if len(hits) >= limit:
                return hits[0] + self.window_seconds - now
            hits.append(now)
        return None

    def reset(self):
        with self._lock:
            self._hits.clear()


admin_limiter = SlidingWindowLimiter()


def extract_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    authorization: Optional[str] = Header(None)
) -> Optional[str]:
    if x_api_key:
        return x_api_key
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return None


def _is_known_key(api_key: str) -> bool:
    return any(secrets.compare_digest(api_key, known) for known in config.api_keys_list)


async def verify_admin_key(
    request: Request,
    api_key: Optional[str] = Depends(extract_api_key)
) -> str:
    """
    Authenticate an admin request.

    Returns the caller's key, or DEV_PRINCIPAL when the guard is open.

    Raises:
        HTTPException: 401 without a key, 403 for an unknown key,
            429 when the key exceeds RATE_LIMIT_PER_MINUTE
    """
    if not config.auth_required:
        return DEV_PRINCIPAL

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="API key required. Provide X-API-Key header or Bearer token.",
            headers={"WWW-Authenticate": "Bearer"}
        )

    if not _is_known_key(api_key):
        logger.warning("Rejected admin request with unknown API key", path=request.url.path)
        raise HTTPException(status_code=403, detail="Invalid API key")

    if config.RATE_LIMIT_PER_MINUTE > 0:
        retry_after = admin_limiter.hit(api_key, config.RATE_LIMIT_PER_MINUTE)
        if retry_after is not None:
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Max {config.RATE_LIMIT_PER_MINUTE} requests per minute.",
                headers={"Retry-After": str(max(1, int(retry_after + 0.999)))}
            )

    return api_key


require_admin = Depends(verify_admin_key)
