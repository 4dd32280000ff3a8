"""Shared slowapi limiter; limits are read from settings on each request."""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from ramsflow.config.settings import get_settings


def default_limit() -> str:
    return get_settings().rate_limit_default


def ai_limit() -> str:
    return get_settings().rate_limit_ai


def auth_limit() -> str:
    return get_settings().rate_limit_auth


def create_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=get_remote_address,
        default_limits=[default_limit],
        enabled=settings.rate_limit_enabled,
    )


limiter = create_limiter()
