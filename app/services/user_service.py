"""User service for business logic"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError

from app.core.errors import InvalidCredential
from app.models.user import User
from app.services.authenticator import Identity


logger = logging.getLogger(__name__)


class UserService:
    """Service for user-related operations"""

    @staticmethod
    async def get_active_user(session: AsyncSession, user_id: int) -> User:
        """
        Load the user behind a local or opaque credential.

        Raises:
            InvalidCredential: If the user no longer exists or is inactive
        """
        user = await session.get(User, user_id)
        if user is None or not user.is_active:
            raise InvalidCredential("Unknown or inactive user")
        return user

    @staticmethod
    async def get_user_by_external_subject(session: AsyncSession, subject: str) -> User | None:
        """
        Get user by the identity provider's subject.

        Args:
            session: Database session
            subject: ``sub`` claim of the external token

        Returns:
            User: User object if found, None otherwise
        """
        stmt = select(User).where(User.external_subject == subject)
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def provision_external(session: AsyncSession, identity: Identity) -> User:
        """
        Map an external identity to a user, creating it on first use.

        Email and name are refreshed from the token claims on every call.

        Raises:
            InvalidCredential: If the mapped user is inactive
        """
        user = await UserService.get_user_by_external_subject(session, identity.subject)
        if user is None:
            user = User(
                external_subject=identity.subject,
                email=identity.email,
                name=identity.name or (identity.email.split("@")[0] if identity.email else None),
                is_active=True,
            )
            session.add(user)
            try:
                await session.commit()
            except IntegrityError:
                # Concurrent first request for the same subject.
                await session.rollback()
                user = await UserService.get_user_by_external_subject(session, identity.subject)
                if user is None:
                    raise
            else:
                await session.refresh(user)
                logger.info("user_provisioned user_id=%s subject=%s", user.id, identity.subject)
                return user

        if not user.is_active:
            raise InvalidCredential("Unknown or inactive user")
        changed = False
        if identity.email and identity.email != user.email:
            user.email = identity.email
            changed = True
        if identity.name and identity.name != user.name:
            user.name = identity.name
            changed = True
        if changed:
            await session.commit()
        return user
