"""
In-memory rate limiting for the management API.
"""
from __future__ import annotations

import os
import time
from typing import Dict, List, Tuple

from fastapi import Request

CREATE_LIMIT = int(os.getenv("SUBSCRIPTION_CREATE_LIMIT", "10"))
CREATE_WINDOW_SECONDS = int(os.getenv("SUBSCRIPTION_CREATE_WINDOW_SECONDS", "300"))

_rate_state: Dict[str, List[float]] = {}


def client_key(request: Request, scope: str) -> str:
    ip = request.client.host if request and request.client else "unknown"
    return f"{scope}:{ip}"


def allow_request_with_remaining(key: str, limit: int = 5, window_seconds: int = 60) -> Tuple[bool, int]:
    """
    Sliding-window rate limit with remaining-count feedback.
    Returns (allowed, remaining_after).
    """
    now = time.time()
    window_start = now - window_seconds
    history = [t for t in _rate_state.get(key, []) if t > window_start]
    if len(history) >= limit:
        _rate_state[key] = history
        return False, 0
    history.append(now)
    _rate_state[key] = history
    return True, max(0, limit - len(history))


def allow_request(key: str, limit: int = 5, window_seconds: int = 60) -> bool:
    allowed, _ = allow_request_with_remaining(key, limit=limit, window_seconds=window_seconds)
    return allowed


def reset_rate_limits() -> None:
    _rate_state.clear()


__all__ = [
    "CREATE_LIMIT",
    "CREATE_WINDOW_SECONDS",
    "allow_request",
    "allow_request_with_remaining",
    "client_key",
    "reset_rate_limits",
]
