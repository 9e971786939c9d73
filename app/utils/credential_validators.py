"""Email and password validation rules for account routes.

Each validator raises ``ValidationAppError`` with a stable code and a
message suitable for end users.
"""

from __future__ import annotations

import re

from app.core.errors import ValidationAppError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8
# bcrypt only accepts up to 72 bytes of input.
MAX_PASSWORD_BYTES = 72


def validate_email(email: str | None) -> str:
    """Validate an email address.

    Args:
        email: Raw email as received.

    Returns:
        The email with surrounding whitespace removed.

    Raises:
        ValidationAppError: If the email is missing or malformed.
    """
    if not email or not email.strip():
        raise ValidationAppError(
            code="email_required",
            message="Email is required",
            details={"field": "email"},
        )

    email = email.strip()
    if not EMAIL_PATTERN.match(email):
        raise ValidationAppError(
            code="email_invalid",
            message="Please enter a valid email address",
            details={"field": "email"},
        )
    return email


def password_fits_hash(password: str) -> bool:
    """True if ``password`` is short enough to be hashed or verified."""
    return len(password.encode("utf-8")) <= MAX_PASSWORD_BYTES


def validate_password_strength(password: str | None, *, field: str = "password") -> str:
    """Validate password strength.

    Requires at least eight characters (and at most 72 UTF-8 bytes)
    including an upper-case letter, a lower-case letter and a digit.

    Returns:
        The password unchanged.

    Raises:
        ValidationAppError: On the first rule the password breaks.
    """
    if not password or not password.strip():
        raise ValidationAppError(
            code="password_required",
            message="Password is required",
            details={"field": field},
        )

    rules = (
        (len(password) >= MIN_PASSWORD_LENGTH, "password_too_short",
         f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"),
        (password_fits_hash(password), "password_too_long",
         f"Password must be at most {MAX_PASSWORD_BYTES} bytes long"),
        (re.search(r"[A-Z]", password) is not None, "password_missing_uppercase",
         "Password must contain at least one uppercase letter"),
        (re.search(r"[a-z]", password) is not None, "password_missing_lowercase",
         "Password must contain at least one lowercase letter"),
        (re.search(r"[0-9]", password) is not None, "password_missing_digit",
         "Password must contain at least one number"),
    )
    for passed, code, message in rules:
        if not passed:
            raise ValidationAppError(code=code, message=message, details={"field": field})
    return password


def require_password(password: str | None, *, field: str = "password") -> str:
    """Ensure a password was supplied (no strength rules, used for login)."""
    if not password:
        raise ValidationAppError(
            code="password_required",
            message="Password is required",
            details={"field": field},
        )
    return password
