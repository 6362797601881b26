"""User SQLAlchemy model"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class User(Base):
    """
    User model representing an account that owns projects and API tokens.

    Attributes:
        id: Primary key, auto-incrementing integer
        email: Contact email, taken from the identity provider when available
        name: Display name
        external_subject: ``sub`` claim from the external identity provider
        is_active: Inactive users cannot authenticate
        created_at: Timestamp of user creation
        updated_at: Timestamp of last update
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=True, index=True)
    name = Column(String(255), nullable=True)
    external_subject = Column(String(255), unique=True, nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    projects = relationship("Project", back_populates="user", cascade="all, delete-orphan")
    tokens = relationship("ApiToken", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, external_subject={self.external_subject})>"
