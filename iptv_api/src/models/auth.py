"""
Account and authentication models.

Provides Pydantic schemas for:
- User documents as stored in MongoDB
- Account request bodies (registration, verification, recovery)
- JWT tokens and payloads
- Shared message and error responses

Request and response bodies keep the camelCase field names existing
clients send (``firstName``, ``verificationCode``...) through aliases,
while Python code uses snake_case.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def strip_text(v: Any) -> Any:
    """Trim surrounding whitespace from identifiers; passwords never go through this."""
    return v.strip() if isinstance(v, str) else v


class CamelModel(BaseModel):
    """Base model accepting both the camelCase alias and the field name."""

    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Token Types
# ============================================================================


class TokenType(str, Enum):
    """Purpose a JWT was issued for."""

    ACCESS = "access"
    RESET = "reset"


# ============================================================================
# Stored Documents
# ============================================================================


class UserDB(BaseModel):
    """
    User account as stored in the ``users`` collection.

    ``verification_code`` is shared by account verification and password
    recovery; at most one code is outstanding per user.
    """
    id: str = Field(..., description="User ID (ObjectId hex)")
    first_name: str
    last_name: str
    username: str
    email: str
    password_hash: str
    verification_code: Optional[str] = None
    verification_expires: Optional[datetime] = None
    is_verified: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

    def __repr__(self) -> str:
        """String representation."""
        return f"<UserDB(id={self.id}, username='{self.username}', email='{self.email}')>"


# ============================================================================
# Request Models
# ============================================================================


class RegisterRequest(CamelModel):
    """Registration request schema."""
    username: str = Field(..., min_length=1, max_length=50, description="Username")
    password: str = Field(..., min_length=1, max_length=128, description="Password")
    email: EmailStr = Field(..., description="Email address")
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=100)

    @field_validator("username", "email", "first_name", "last_name", mode="before")
    @classmethod
    def strip_identifiers(cls, v: Any) -> Any:
        return strip_text(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Store emails lower-cased so lookups are case-insensitive."""
        return v.lower()

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "username": "jdoe",
                "password": "s3cret-pass",
                "email": "jdoe@example.com",
                "firstName": "John",
                "lastName": "Doe"
            }
        }
    )


class VerifyAccountRequest(CamelModel):
    """Account verification request schema."""
    code: str = Field(..., min_length=1, description="Six-digit verification code")

    @field_validator("code", mode="before")
    @classmethod
    def strip_identifiers(cls, v: Any) -> Any:
        return strip_text(v)


class EmailRequest(CamelModel):
    """Request schema for flows keyed by email address."""
    email: EmailStr = Field(..., description="Email address")

    @field_validator("email", mode="before")
    @classmethod
    def strip_identifiers(cls, v: Any) -> Any:
        return strip_text(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Match the lower-cased form used at registration."""
        return v.lower()


class LoginRequest(CamelModel):
    """Login request schema."""
    username: str = Field(..., min_length=1, description="Username")
    password: str = Field(..., min_length=1, description="Password")

    @field_validator("username", mode="before")
    @classmethod
    def strip_identifiers(cls, v: Any) -> Any:
        return strip_text(v)

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "username": "jdoe",
                "password": "s3cret-pass"
            }
        }
    )


class VerifyResetCodeRequest(CamelModel):
    """Password recovery code check request schema."""
    verification_code: str = Field(
        ...,
        alias="verificationCode",
        min_length=1,
        description="Six-digit recovery code"
    )

    @field_validator("verification_code", mode="before")
    @classmethod
    def strip_identifiers(cls, v: Any) -> Any:
        return strip_text(v)


class ResetPasswordRequest(CamelModel):
    """Password reset request schema."""
    new_password: str = Field(
        ...,
        alias="newPassword",
        min_length=1,
        max_length=128,
        description="New password"
    )


# ============================================================================
# Response Models
# ============================================================================


class MessageResponse(BaseModel):
    """Plain confirmation message."""
    message: str


class TokenResponse(BaseModel):
    """JWT access token response schema."""
    token: str = Field(..., min_length=10, description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., gt=0, description="Token lifetime in seconds")


class ResetTokenResponse(CamelModel):
    """Response carrying the short-lived password reset token."""
    message: str
    reset_token: str = Field(..., alias="resetToken")


class ErrorResponse(BaseModel):
    """Error response schema."""
    detail: str = Field(..., min_length=1, description="Error message")

    model_config = {
        "json_schema_extra": {
            "example": {
                "detail": "Invalid credentials"
            }
        }
    }


# ============================================================================
# Token Models
# ============================================================================


class TokenPayload(BaseModel):
    """JWT claims issued by this service."""
    sub: str = Field(..., description="Subject (user ID)")
    type: TokenType = Field(..., description="Token purpose")
    exp: int = Field(..., description="Expiration timestamp (Unix epoch)")
    iat: int = Field(..., description="Issued at timestamp (Unix epoch)")


class CurrentUser(BaseModel):
    """
    Current authenticated user model.

    Injected into request handlers through dependency injection.
    """
    id: str
    username: str
    email: str
    is_verified: bool
