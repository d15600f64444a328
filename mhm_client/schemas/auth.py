"""
Pydantic schemas for authentication and backend profile flags.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from mhm_client.schemas.dates import EPOCH_SECONDS, coerce_datetime


class User(BaseModel):
    """User record as returned by the backend."""
    id: str = Field(..., description="Stable backend user id (used as billing app user id)")
    email: str
    name: str = ""
    language: str = "es"

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v):
        return str(v) if v is not None else v


class LoginRequest(BaseModel):
    """Request schema for user login."""
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "email": "rider@example.com",
            "password": "SecurePass123"
        }
    })


class RegisterRequest(BaseModel):
    """Request schema for account registration."""
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=6, description="User's password")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    language: str = Field("es", description="Preferred language (es, en, fr)")
    security_question: str = Field("¿Cuál es tu comida favorita?", description="Password recovery question")
    security_answer: str = Field("default", description="Password recovery answer")


class AuthResponse(BaseModel):
    """Response of /api/auth/login and /api/auth/register."""
    access_token: str
    user: User


class BackendFlags(BaseModel):
    """Admin and premium flags from /api/user/subscription-status."""
    is_admin: bool = False
    is_premium: bool = False
    premium_expires_at: Optional[datetime] = Field(None, description="Manual premium expiration, if any")

    @field_validator("is_admin", "is_premium", mode="before")
    @classmethod
    def _null_is_false(cls, v):
        return False if v is None else v

    @field_validator("premium_expires_at", mode="before")
    @classmethod
    def _degrade_bad_date(cls, v):
        return coerce_datetime(v, epoch_unit=EPOCH_SECONDS)
