from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.core.rate_limit import (
    LOGIN,
    PASSWORD_CHANGE,
    PASSWORD_RESET,
    REGISTER,
    rate_limited,
)
from app.schemas.auth import (
    AccountResponse,
    LoginRequest,
    MessageResponse,
    PasswordChangeRequest,
    PasswordResetRequest,
    RegisterRequest,
)
from app.services.account_service import AccountService
from app.services.user_store import build_seeded_store

router = APIRouter(prefix="/auth", tags=["Auth"])

_account_service = AccountService(store=build_seeded_store())


def get_account_service() -> AccountService:
    return _account_service


AccountServiceDep = Annotated[AccountService, Depends(get_account_service)]


@router.post(
    "/register",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limited(REGISTER))],
)
def register(payload: RegisterRequest, service: AccountServiceDep) -> AccountResponse:
    """Create an account.

    Throttled per client (3 attempts per hour by default).

    Raises:
        ValidationAppError: 400 for an invalid email or weak password.
        ConflictAppError: 409 if the email is already registered.
        RateLimitAppError: 429 when the client exhausted its attempts.
    """
    user = service.register(payload.email, payload.password)
    return AccountResponse(
        user=user,
        message="Registration successful. You can now log in.",
    )


@router.post(
    "/login",
    response_model=AccountResponse,
    dependencies=[Depends(rate_limited(LOGIN))],
)
def login(payload: LoginRequest, service: AccountServiceDep) -> AccountResponse:
    """Check credentials and return the user summary.

    Throttled per client (5 attempts per 15 minutes by default).
    """
    user = service.login(payload.email, payload.password)
    return AccountResponse(user=user)


@router.post(
    "/password/reset",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(rate_limited(PASSWORD_RESET))],
)
def request_password_reset(
    payload: PasswordResetRequest, service: AccountServiceDep
) -> MessageResponse:
    message = service.request_password_reset(payload.email)
    return MessageResponse(message=message)


@router.post(
    "/password/change",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limited(PASSWORD_CHANGE))],
)
def change_password(
    payload: PasswordChangeRequest, service: AccountServiceDep
) -> MessageResponse:
    service.change_password(
        payload.email,
        payload.current_password,
        payload.new_password,
    )
    return MessageResponse(message="Password updated successfully.")
