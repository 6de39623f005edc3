from __future__ import annotations

import time
from typing import Callable, Optional

DEFAULT_TOKEN_TTL_SECONDS = 3600
# Treat a token as stale slightly before the endpoint says it expires
REFRESH_SKEW_SECONDS = 60


class TokenCache:
    """Single-slot bearer token cache with expiry tracking.

    Owned by one VertexClient instance; each set() overwrites the slot.
    """

    def __init__(self, clock: Callable[[], float] = time.time, skew: int = REFRESH_SKEW_SECONDS) -> None:
        self._clock = clock
        self._skew = skew
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    def get(self) -> Optional[str]:
        if self._token is None:
            return None
        if self._clock() >= self._expires_at - self._skew:
            return None
        return self._token

    def set(self, token: str, expires_in: Optional[int] = None) -> None:
        ttl = expires_in if isinstance(expires_in, (int, float)) and expires_in > 0 else DEFAULT_TOKEN_TTL_SECONDS
        self._token = token
        self._expires_at = self._clock() + ttl

    def clear(self) -> None:
        self._token = None
        self._expires_at = 0.0

    @property
    def expires_at(self) -> float:
        return self._expires_at


__all__ = ["TokenCache", "DEFAULT_TOKEN_TTL_SECONDS", "REFRESH_SKEW_SECONDS"]
