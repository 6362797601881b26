"""Access token exchange endpoint"""
from fastapi import APIRouter, Depends

from app.core.security import create_access_token
from app.dependencies.auth import get_current_user
from app.dependencies.rate_limit import ENDPOINT_AUTH_TOKEN, user_rate_limit
from app.models.user import User
from app.schemas.token import AccessTokenResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/token",
    response_model=AccessTokenResponse,
    dependencies=[Depends(user_rate_limit(ENDPOINT_AUTH_TOKEN, "RATE_LIMIT_AUTH_TOKEN"))],
)
async def issue_access_token(current_user: User = Depends(get_current_user)) -> AccessTokenResponse:
    """
    Exchange the caller's credential for a short-lived locally signed token.
    """
    claims = {"email": current_user.email} if current_user.email else None
    token, expires_in = create_access_token(str(current_user.id), extra_claims=claims)
    return AccessTokenResponse(access_token=token, expires_in=expires_in)
