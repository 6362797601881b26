"""Security utilities for API token hashing and access token signing"""

import secrets
import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from app.core.config import settings


# --- API Token Hashing (SHA-256 or HMAC-SHA256) ---
def hash_api_token(raw_token: str) -> str:
    """
    Hash an opaque API token using HMAC-SHA256 (or SHA-256 if SECRET_KEY is unset).
    Args:
        raw_token: The plain text token presented as a bearer credential
    Returns:
        str: The hex digest stored in the token table
    """
    secret = getattr(settings, "SECRET_KEY", None)
    if secret:
        return hmac.new(secret.encode(), raw_token.encode(), hashlib.sha256).hexdigest()
    return hashlib.sha256(raw_token.encode()).hexdigest()


def generate_api_token() -> str:
    """
    Generate a new opaque bearer token.
    Returns:
        str: Prefixed random token, e.g. ``sbom_Jd8...``
    """
    return f"{settings.API_TOKEN_PREFIX}{secrets.token_urlsafe(32)}"


def token_preview(raw_token: str) -> str:
    """Return the displayable head of a token; the rest is never shown again."""
    return raw_token[: len(settings.API_TOKEN_PREFIX) + 6]


# --- Local access tokens (JWT signed with SECRET_KEY) ---
def create_access_token(
    subject: str,
    extra_claims: Optional[dict[str, Any]] = None,
    expires_delta: Optional[timedelta] = None,
) -> tuple[str, int]:
    """
    Sign a short-lived access token for the local verification scheme.
    Args:
        subject: User id placed in the ``sub`` claim
        extra_claims: Additional claims to embed (e.g. email)
        expires_delta: Lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES
    Returns:
        tuple: (encoded token, lifetime in seconds)
    """
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    now = datetime.now(timezone.utc)
    claims: dict[str, Any] = dict(extra_claims or {})
    claims.update(
        {
            "sub": subject,
            "iss": settings.LOCAL_TOKEN_ISSUER,
            "iat": int(now.timestamp()),
            "exp": int((now + lifetime).timestamp()),
        }
    )
    encoded = jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded, int(lifetime.total_seconds())


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Verify a locally signed access token.
    Raises:
        jwt.PyJWTError: On bad signature, issuer, expiry or missing claims
    """
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.ALGORITHM],
        issuer=settings.LOCAL_TOKEN_ISSUER,
        options={"require": ["exp", "sub", "iss"]},
    )


def looks_like_jwt(value: str) -> bool:
    """Structural check: three non-empty dot-separated segments."""
    parts = value.split(".")
    return len(parts) == 3 and all(parts)
