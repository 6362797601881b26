"""Bearer credential verification.

Three verifiers are tried in order: locally signed JWT, JWT issued by the
external OIDC provider, then opaque API token lookup. Each returns an
``Identity`` or ``None``; the first success wins and, when all decline, the
caller gets ``InvalidCredential``.
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import httpx
import jwt
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import InvalidCredential, MissingCredential
from app.core.security import decode_access_token, hash_api_token, looks_like_jwt
from app.models.token import ApiToken
from app.models.user import User


logger = logging.getLogger(__name__)

_EXTERNAL_ALGS = {"RS256", "RS384", "RS512", "ES256", "ES384", "ES512"}

AUTH_METHOD_LOCAL = "local"
AUTH_METHOD_EXTERNAL = "external"
AUTH_METHOD_TOKEN = "api_token"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller.

    ``user_id`` is known for local and opaque tokens; external identities carry
    the provider ``subject`` and are mapped to a user afterwards.
    """

    subject: str
    auth_method: str
    user_id: Optional[int] = None
    email: Optional[str] = None
    name: Optional[str] = None
    token_id: Optional[str] = None
    claims: dict[str, Any] = field(default_factory=dict)


class CredentialVerifier(Protocol):
    name: str

    async def verify(self, credential: str) -> Optional[Identity]:
        ...


def parse_bearer(header_value: Optional[str]) -> str:
    """
    Extract the credential from an ``Authorization: Bearer <value>`` header.
    Raises:
        MissingCredential: If the header is absent, uses another scheme or is empty
    """
    if not header_value:
        raise MissingCredential("Missing authorization header")
    scheme, _, value = header_value.strip().partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        raise MissingCredential("Missing bearer token")
    return value.strip()


class LocalTokenVerifier:
    """Short-lived JWTs signed by this service with SECRET_KEY."""

    name = AUTH_METHOD_LOCAL

    async def verify(self, credential: str) -> Optional[Identity]:
        if not looks_like_jwt(credential):
            return None
        try:
            claims = decode_access_token(credential)
            user_id = int(claims["sub"])
        except (jwt.PyJWTError, ValueError, KeyError):
            return None
        return Identity(
            subject=str(user_id),
            auth_method=self.name,
            user_id=user_id,
            email=claims.get("email"),
            name=claims.get("name"),
            claims=claims,
        )


class JwksCache:
    """Caches the provider's JWKS document for a bounded time."""

    def __init__(self, jwks_url: str, ttl_seconds: int, timeout: float) -> None:
        self._jwks_url = jwks_url
        self._ttl_seconds = ttl_seconds
        self._timeout = timeout
        self._jwks: Optional[dict[str, Any]] = None
        self._fetched_at = 0.0
        self._lock = asyncio.Lock()

    async def _fetch(self) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(self._jwks_url)
        response.raise_for_status()
        return response.json()

    async def get(self, force: bool = False) -> dict[str, Any]:
        async with self._lock:
            stale = time.monotonic() - self._fetched_at > self._ttl_seconds
            if self._jwks is None or stale or force:
                self._jwks = await self._fetch()
                self._fetched_at = time.monotonic()
            return self._jwks


def _select_jwk(jwks: dict[str, Any], kid: Optional[str]) -> Optional[dict[str, Any]]:
    keys = jwks.get("keys") or []
    if kid:
        for key in keys:
            if key.get("kid") == kid:
                return key
        return None
    if len(keys) == 1:
        return keys[0]
    return None


def _jwk_to_key(jwk: dict[str, Any], alg: str) -> Any:
    payload = json.dumps(jwk)
    if alg.startswith("RS"):
        return jwt.algorithms.RSAAlgorithm.from_jwk(payload)
    return jwt.algorithms.ECAlgorithm.from_jwk(payload)


class ExternalTokenVerifier:
    """JWTs issued by the configured OIDC provider, checked against its JWKS."""

    name = AUTH_METHOD_EXTERNAL

    def __init__(
        self,
        issuer: Optional[str],
        audience: Optional[str],
        jwks: Optional[JwksCache],
        clock_skew_seconds: int = 60,
    ) -> None:
        self._issuer = issuer
        self._audience = audience
        self._jwks = jwks
        self._clock_skew_seconds = clock_skew_seconds

    @property
    def enabled(self) -> bool:
        return bool(self._issuer and self._audience and self._jwks)

    async def verify(self, credential: str) -> Optional[Identity]:
        if not self.enabled or not looks_like_jwt(credential):
            return None
        try:
            header = jwt.get_unverified_header(credential)
        except jwt.PyJWTError:
            return None
        alg = header.get("alg")
        if alg not in _EXTERNAL_ALGS:
            return None
        try:
            jwks = await self._jwks.get()
            jwk = _select_jwk(jwks, header.get("kid"))
            if jwk is None:
                # Provider may have rotated keys since the last fetch.
                jwks = await self._jwks.get(force=True)
                jwk = _select_jwk(jwks, header.get("kid"))
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("jwks_fetch_failed error=%s", exc.__class__.__name__)
            return None
        if jwk is None:
            return None
        try:
            key = _jwk_to_key(jwk, alg)
            claims = jwt.decode(
                credential,
                key,
                algorithms=[alg],
                audience=self._audience,
                issuer=self._issuer,
                leeway=self._clock_skew_seconds,
                options={"require": ["exp", "iss", "aud", "sub"]},
            )
        except (jwt.PyJWTError, ValueError):
            return None
        return Identity(
            subject=str(claims["sub"]),
            auth_method=self.name,
            email=claims.get("email"),
            name=claims.get("name"),
            claims=claims,
        )


class OpaqueTokenVerifier:
    """API tokens issued through ``POST /tokens``, looked up by hash."""

    name = AUTH_METHOD_TOKEN

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def verify(self, credential: str) -> Optional[Identity]:
        stmt = (
            select(ApiToken, User)
            .join(User, ApiToken.user_id == User.id)
            .where(ApiToken.token_hash == hash_api_token(credential))
        )
        row = (await self._session.execute(stmt)).first()
        if row is None:
            return None
        token, user = row
        if not user.is_active:
            return None
        if token.expires_at is not None and _as_utc(token.expires_at) <= datetime.now(timezone.utc):
            return None
        identity = Identity(
            subject=str(user.id),
            auth_method=self.name,
            user_id=user.id,
            email=user.email,
            name=user.name,
            token_id=token.id,
        )
        await self._touch_last_used(token.id)
        return identity

    async def _touch_last_used(self, token_id: str) -> None:
        # Bookkeeping only; a failure here never changes the auth decision.
        try:
            await self._session.execute(
                update(ApiToken)
                .where(ApiToken.id == token_id)
                .values(last_used_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.warning("token_last_used_update_failed token_id=%s error=%s", token_id, exc.__class__.__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Authenticator:
    """Runs the verifier chain; exactly one verifier must accept the credential."""

    def __init__(self, verifiers: list[CredentialVerifier]) -> None:
        self._verifiers = verifiers

    async def authenticate(self, credential: Optional[str]) -> Identity:
        """
        Resolve a bearer credential to an identity.
        Args:
            credential: Raw bearer value, already stripped of the scheme
        Returns:
            Identity: The caller
        Raises:
            MissingCredential: If no credential was supplied
            InvalidCredential: If every verifier declined it
        """
        if not credential:
            raise MissingCredential("Missing bearer token")
        for verifier in self._verifiers:
            identity = await verifier.verify(credential)
            if identity is not None:
                logger.debug("auth_success method=%s subject=%s", verifier.name, identity.subject)
                return identity
        logger.info("auth_failure reason=invalid_credential")
        raise InvalidCredential("Invalid token")


_jwks_cache: Optional[JwksCache] = None


def get_jwks_cache() -> Optional[JwksCache]:
    """Process-wide JWKS cache for the configured provider, or None if unconfigured."""
    global _jwks_cache
    jwks_url = settings.jwks_url
    if not jwks_url:
        return None
    if _jwks_cache is None or _jwks_cache._jwks_url != jwks_url:
        _jwks_cache = JwksCache(
            jwks_url,
            ttl_seconds=settings.JWKS_CACHE_TTL_SECONDS,
            timeout=settings.JWKS_FETCH_TIMEOUT_SECONDS,
        )
    return _jwks_cache


def build_authenticator(session: AsyncSession) -> Authenticator:
    """Assemble the verifier chain from settings."""
    return Authenticator(
        [
            LocalTokenVerifier(),
            ExternalTokenVerifier(
                issuer=settings.OIDC_ISSUER,
                audience=settings.OIDC_AUDIENCE,
                jwks=get_jwks_cache(),
                clock_skew_seconds=settings.OIDC_CLOCK_SKEW_SECONDS,
            ),
            OpaqueTokenVerifier(session),
        ]
    )
