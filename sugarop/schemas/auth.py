"""Authentication schemas for Supabase JWT tokens."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, EmailStr, Field


class JWTClaims(BaseModel):
    """JWT claims extracted from Supabase access token."""

    sub: str = Field(..., description="Subject (user ID)")
    email: Optional[EmailStr] = Field(None, description="User email")
    role: str = Field(default="authenticated", description="User role")
    exp: int = Field(..., description="Expiration timestamp")
    iat: int = Field(..., description="Issued at timestamp")
    iss: str = Field(..., description="Token issuer")

    # Optional Supabase-specific claims
    aud: Optional[str] = Field(None, description="Audience")
    app_metadata: Optional[Dict[str, Any]] = Field(None, description="Application metadata")
    user_metadata: Optional[Dict[str, Any]] = Field(None, description="User metadata")
    session_id: Optional[str] = Field(None, description="Session ID")


class CurrentUser(BaseModel):
    """Current authenticated user information."""

    id: str = Field(..., description="Supabase user ID")
    email: Optional[EmailStr] = Field(None, description="User email")
    role: str = Field(default="authenticated", description="User role")


__all__ = ["JWTClaims", "CurrentUser"]
