"""Pydantic schemas for account requests and responses."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


Role = Literal["USER", "ADMIN"]


class RegisterRequest(BaseModel):
    """Credentials for a new account."""

    email: str | None = Field(default=None, description="Account email address.")
    password: str | None = Field(
        default=None,
        description="At least 8 characters with upper-case, lower-case and a digit.",
    )


class LoginRequest(BaseModel):
    """Credentials for signing in."""

    email: str | None = Field(default=None, description="Account email address.")
    password: str | None = Field(default=None, description="Account password.")
    remember_me: bool = Field(
        default=False,
        description="Request a long-lived session (accepted, not used for token issuance).",
    )


class PasswordResetRequest(BaseModel):
    """Request a password reset for an email address."""

    email: str | None = Field(default=None, description="Account email address.")


class PasswordChangeRequest(BaseModel):
    """Change the password of an existing account."""

    email: str | None = Field(default=None, description="Account email address.")
    current_password: str | None = Field(default=None, description="Current password.")
    new_password: str | None = Field(default=None, description="Replacement password.")


class UserSummary(BaseModel):
    """Public view of an account; never carries the password hash."""

    id: str
    email: str
    role: Role
    is_verified: bool = True


class AccountResponse(BaseModel):
    """Envelope returned by register and login."""

    success: bool = True
    user: UserSummary
    message: str | None = None


class MessageResponse(BaseModel):
    """Envelope for operations that only report an outcome."""

    success: bool = True
    message: str
