"""Token service for issuing, listing and revoking API tokens"""
import logging
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError

from app.core.errors import InvalidRequest, InternalError, NotFound
from app.core.security import generate_api_token, hash_api_token, token_preview
from app.models.token import ApiToken
from app.models.user import User
from app.schemas.token import TokenCreate, TokenCreatedResponse, TokenResponse


logger = logging.getLogger(__name__)

# Collisions of 256-bit random secrets are not expected; the retry only guards the unique index.
_ISSUE_ATTEMPTS = 3


def _to_response(token: ApiToken) -> TokenResponse:
    return TokenResponse(
        id=token.id,
        name=token.name,
        description=token.description,
        token_preview=f"{token.token_prefix}...",
        created_at=token.created_at,
        last_used_at=token.last_used_at,
        expires_at=token.expires_at,
    )


class TokenService:
    """Service for API token operations"""

    @staticmethod
    async def issue_token(session: AsyncSession, user: User, data: TokenCreate) -> TokenCreatedResponse:
        """
        Issue a new opaque token for the user.

        Args:
            session: Database session
            user: Owner of the new token
            data: Name and optional description

        Returns:
            TokenCreatedResponse: Token metadata plus the raw secret (shown only here)

        Raises:
            InvalidRequest: If the name is missing or blank
        """
        name = (data.name or "").strip()
        if not name:
            raise InvalidRequest("Token name is required")
        description = (data.description or "").strip() or None
        user_id = user.id

        for attempt in range(1, _ISSUE_ATTEMPTS + 1):
            raw_token = generate_api_token()
            token = ApiToken(
                id=str(uuid4()),
                user_id=user_id,
                name=name,
                token_hash=hash_api_token(raw_token),
                token_prefix=token_preview(raw_token),
                description=description,
            )
            session.add(token)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.warning("token_issue_collision user_id=%s attempt=%s", user_id, attempt)
                continue
            await session.refresh(token)
            logger.info("token_issued user_id=%s token_id=%s", user_id, token.id)
            return TokenCreatedResponse(**_to_response(token).model_dump(), token=raw_token)
        raise InternalError("Could not issue a unique token")

    @staticmethod
    async def list_tokens(session: AsyncSession, user: User) -> list[TokenResponse]:
        stmt = select(ApiToken).where(ApiToken.user_id == user.id).order_by(ApiToken.created_at.desc())
        result = await session.execute(stmt)
        return [_to_response(token) for token in result.scalars().all()]

    @staticmethod
    async def delete_token(session: AsyncSession, user: User, token_id: str) -> None:
        """
        Delete a token owned by the user; the credential stops working immediately.

        Raises:
            NotFound: If the token does not exist or belongs to someone else
        """
        stmt = select(ApiToken).where(ApiToken.id == token_id, ApiToken.user_id == user.id)
        token = (await session.execute(stmt)).scalars().first()
        if token is None:
            raise NotFound("Token not found")
        await session.delete(token)
        await session.commit()
        logger.info("token_deleted user_id=%s token_id=%s", user.id, token_id)
