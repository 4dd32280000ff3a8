"""
Security utilities: password hashing, JWT creation and verification.

Secrets are never logged. Access tokens carry the user's role and
tenant; refresh tokens carry only the subject.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import UTC, datetime, timedelta

import bcrypt
from jose import JWTError, jwt

from ramsflow.config.settings import get_settings

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


# ── Password ──────────────────────────────────────────────────────────── #


def _prehash(plain: str) -> bytes:
    # bcrypt truncates at 72 bytes; a hex digest keeps long passphrases intact
    return hashlib.sha256(plain.encode("utf-8")).hexdigest().encode("utf-8")


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_prehash(plain), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a plaintext password against a stored hash. Never raises."""
    try:
        return bcrypt.checkpw(_prehash(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


# ── JWT ───────────────────────────────────────────────────────────────── #


def _encode(subject: str, token_type: str, lifetime: timedelta, **claims: object) -> str:
    settings = get_settings()
    now = datetime.now(UTC)
    payload: dict[str, object] = {
        "sub": subject,
        "iat": now,
        "exp": now + lifetime,
        "type": token_type,
        "jti": secrets.token_hex(16),
        **claims,
    }
    return jwt.encode(
        payload,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(
    subject: str,
    role: str,
    extra_claims: dict[str, object] | None = None,
) -> str:
    """
    Create a signed JWT access token.

    Args:
        subject: The user ID (``sub`` claim).
        role: The user role name.
        extra_claims: Optional additional claims, e.g. ``tenant_id``.
    """
    settings = get_settings()
    return _encode(
        subject,
        ACCESS_TOKEN,
        timedelta(minutes=settings.jwt_access_token_expire_minutes),
        role=role,
        **(extra_claims or {}),
    )


def create_refresh_token(subject: str) -> str:
    """Create a signed JWT refresh token (no role claim)."""
    settings = get_settings()
    return _encode(subject, REFRESH_TOKEN, timedelta(days=settings.jwt_refresh_token_expire_days))


def decode_token(token: str, expected_type: str | None = None) -> dict[str, object]:
    """
    Decode and validate a JWT.

    Raises:
        JWTError: If the token is invalid, expired, tampered with, or of
            a different type than ``expected_type``.
    """
    settings = get_settings()
    payload: dict[str, object] = jwt.decode(
        token,
        settings.jwt_secret_key.get_secret_value(),
        algorithms=[settings.jwt_algorithm],
    )
    if expected_type is not None and payload.get("type") != expected_type:
        raise JWTError(f"Expected a {expected_type} token")
    return payload
