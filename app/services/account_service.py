"""Account operations behind the throttled auth routes.

Validates input, talks to the user store and reports outcomes as domain
errors. Rate limiting happens before these methods are reached; issuing
tokens and cookies is left to the web frontend.
"""

from __future__ import annotations

import logging

from app.core.errors import AuthenticationAppError, ConflictAppError
from app.core.logging import hash_for_log
from app.schemas.auth import UserSummary
from app.services.user_store import UserStore, verify_password
from app.utils.credential_validators import (
    require_password,
    validate_email,
    validate_password_strength,
)

logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = (
    "If an account exists for this email, password reset instructions have been sent."
)


class AccountService:
    """Register, authenticate and update passwords for users.

    Attributes:
        store: Backing user store.
    """

    def __init__(self, store: UserStore) -> None:
        self.store = store

    def register(self, email: str | None, password: str | None) -> UserSummary:
        """Create a new account.

        Raises:
            ValidationAppError: Invalid email or weak password.
            ConflictAppError: Email already registered.
        """
        email = validate_email(email)
        password = validate_password_strength(password)

        record = self.store.create(email, password)
        if record is None:
            logger.info("auth.register_conflict", extra={"email_hash": hash_for_log(email)})
            raise ConflictAppError(
                code="user_exists",
                message="User with this email already exists",
            )

        logger.info("auth.registered", extra={"user_id": record.id})
        return record.to_summary()

    def login(self, email: str | None, password: str | None) -> UserSummary:
        """Check credentials and return the matching user.

        Unknown email and wrong password produce the same error.

        Raises:
            ValidationAppError: Invalid email or missing password.
            AuthenticationAppError: Credentials do not match.
        """
        email = validate_email(email)
        password = require_password(password)

        record = self.store.get_by_email(email)
        if record is None or not verify_password(password, record.password_hash):
            logger.warning(
                "auth.login_failed",
                extra={
                    "email_hash": hash_for_log(email.lower()),
                    "reason": "unknown_user" if record is None else "bad_password",
                },
            )
            raise AuthenticationAppError(
                code="invalid_credentials",
                message="Invalid credentials",
            )

        logger.info("auth.login_succeeded", extra={"user_id": record.id, "role": record.role})
        return record.to_summary()

    def request_password_reset(self, email: str | None) -> str:
        """Accept a reset request without revealing whether the account exists.

        Delivery of the reset message is handled outside this service.
        """
        email = validate_email(email)
        record = self.store.get_by_email(email)
        logger.info(
            "auth.password_reset_requested",
            extra={
                "email_hash": hash_for_log(email.lower()),
                "account_exists": record is not None,
            },
        )
        return RESET_REQUESTED_MESSAGE

    def change_password(
        self,
        email: str | None,
        current_password: str | None,
        new_password: str | None,
    ) -> None:
        """Replace the password after verifying the current one.

        Raises:
            ValidationAppError: Invalid email or weak new password.
            AuthenticationAppError: Current password does not match.
        """
        email = validate_email(email)
        current_password = require_password(current_password, field="current_password")
        new_password = validate_password_strength(new_password, field="new_password")

        record = self.store.get_by_email(email)
        if record is None or not verify_password(current_password, record.password_hash):
            logger.warning(
                "auth.password_change_failed",
                extra={"email_hash": hash_for_log(email.lower())},
            )
            raise AuthenticationAppError(
                code="invalid_credentials",
                message="Invalid credentials",
            )

        self.store.set_password(email, new_password)
        logger.info("auth.password_changed", extra={"user_id": record.id})
