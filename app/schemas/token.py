"""Pydantic schemas for API tokens"""
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class TokenCreate(BaseModel):
    """
    Schema for issuing a new API token.

    ``name`` is validated by the service so a blank name yields 400, not 422.
    """

    name: Optional[str] = Field(default=None, description="Display name for the token")
    description: Optional[str] = Field(default=None, description="Optional free text")


class TokenResponse(BaseModel):
    """
    Token as shown in listings.

    Note:
        The secret is never included; ``token_preview`` shows its first characters.
    """

    id: str
    name: str
    description: Optional[str] = None
    token_preview: str
    created_at: datetime
    last_used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TokenCreatedResponse(TokenResponse):
    """Token as returned once at creation, including the raw secret."""

    token: str


class TokenListEnvelope(BaseModel):
    tokens: list[TokenResponse]
    remainingRequests: int


class TokenCreatedEnvelope(BaseModel):
    token: TokenCreatedResponse
    remainingRequests: int


class AccessTokenResponse(BaseModel):
    """Short-lived locally signed access token"""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
