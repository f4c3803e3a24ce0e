"""
Per-IP rate limiting for the credential endpoints.

Register and login share one budget per client address. The limit string
is read on every request, so `configure_rate_limits` applies a new
Settings to the process-wide limiter.

Usage in routes:
    @router.post("/login")
    @limiter.shared_limit(auth_rate_limit, scope="auth")
    async def login(request: Request, ...):
        ...
"""

from __future__ import annotations

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

from taskhub.config import Settings

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)

_auth_limit = Settings.model_fields["auth_rate_limit"].default


def auth_rate_limit() -> str:
    return _auth_limit


def configure_rate_limits(settings: Settings) -> None:
    """Apply settings and start every client with a fresh budget."""
    global _auth_limit
    _auth_limit = settings.auth_rate_limit
    limiter.enabled = settings.rate_limit_enabled
    limiter.reset()
    logger.debug(
        "Auth rate limit %s (%s)",
        _auth_limit,
        "enabled" if limiter.enabled else "disabled",
    )
