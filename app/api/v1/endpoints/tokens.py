"""API token management endpoints"""
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies.auth import get_current_user
from app.dependencies.rate_limit import (
    ENDPOINT_TOKENS_DELETE,
    ENDPOINT_TOKENS_GET,
    ENDPOINT_TOKENS_POST,
    user_rate_limit,
)
from app.models.user import User
from app.schemas.token import TokenCreate, TokenCreatedEnvelope, TokenListEnvelope
from app.services.rate_limiter import RateLimitDecision
from app.services.token_service import TokenService

router = APIRouter(prefix="/tokens", tags=["tokens"])


@router.get("", response_model=TokenListEnvelope)
async def list_tokens(
    decision: RateLimitDecision = Depends(user_rate_limit(ENDPOINT_TOKENS_GET, "RATE_LIMIT_TOKENS_LIST")),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> TokenListEnvelope:
    """
    List the caller's tokens. Secrets are never returned, only their preview.
    """
    tokens = await TokenService.list_tokens(session, current_user)
    return TokenListEnvelope(tokens=tokens, remainingRequests=decision.remaining)


@router.post("", response_model=TokenCreatedEnvelope, status_code=status.HTTP_201_CREATED)
async def create_token(
    data: TokenCreate,
    decision: RateLimitDecision = Depends(user_rate_limit(ENDPOINT_TOKENS_POST, "RATE_LIMIT_TOKENS_CREATE")),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> TokenCreatedEnvelope:
    """
    Issue a new API token. The raw secret is only present in this response.
    """
    token = await TokenService.issue_token(session, current_user, data)
    return TokenCreatedEnvelope(token=token, remainingRequests=decision.remaining)


@router.delete("/{token_id}")
async def delete_token(
    token_id: str = Path(..., description="Token ID"),
    _: RateLimitDecision = Depends(user_rate_limit(ENDPOINT_TOKENS_DELETE, "RATE_LIMIT_TOKENS_DELETE")),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> dict:
    await TokenService.delete_token(session, current_user, token_id)
    return {"message": "Token deleted successfully"}
