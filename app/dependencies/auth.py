"""Authentication dependencies for FastAPI"""
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.models.user import User
from app.services.authenticator import Authenticator, Identity, build_authenticator, parse_bearer
from app.services.user_service import UserService


def get_authenticator(session: AsyncSession = Depends(get_db)) -> Authenticator:
    """Verifier chain bound to the request's database session."""
    return build_authenticator(session)


async def get_identity(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    authenticator: Authenticator = Depends(get_authenticator),
) -> Identity:
    """
    Dependency to verify the bearer credential from the Authorization header.
    Args:
        authorization: Raw ``Authorization`` header value
        authenticator: Verifier chain
    Returns:
        Identity: Authenticated caller
    Raises:
        MissingCredential: If no bearer credential was sent (401)
        InvalidCredential: If no verifier accepted it (401)
    """
    credential = parse_bearer(authorization)
    return await authenticator.authenticate(credential)


async def get_current_user(
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency resolving the authenticated identity to a user row.

    External identities are provisioned on first use; local and opaque
    credentials already name a user id.
    """
    if identity.user_id is not None:
        return await UserService.get_active_user(session, identity.user_id)
    return await UserService.provision_external(session, identity)
