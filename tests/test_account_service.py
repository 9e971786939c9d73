"""Unit tests for AccountService and the in-memory user store."""

import pytest

from app.core.errors import AuthenticationAppError, ConflictAppError, ValidationAppError
from app.services.account_service import RESET_REQUESTED_MESSAGE, AccountService
from app.services.user_store import UserStore, build_seeded_store, hash_password, verify_password


@pytest.fixture(scope="module")
def seeded_store() -> UserStore:
    return build_seeded_store()


@pytest.fixture
def service() -> AccountService:
    return AccountService(store=UserStore())


def test_password_hashing_round_trip() -> None:
    hashed = hash_password("Sup3rSecret")

    assert hashed != "Sup3rSecret"
    assert verify_password("Sup3rSecret", hashed) is True
    assert verify_password("wrong", hashed) is False


def test_seeded_store_contains_demo_accounts(seeded_store: UserStore) -> None:
    assert len(seeded_store) == 2
    admin = seeded_store.get_by_email("ADMIN@example.com")
    assert admin is not None
    assert admin.role == "ADMIN"
    assert verify_password("password", admin.password_hash)


def test_register_then_login(service: AccountService) -> None:
    created = service.register("learner@example.com", "Sup3rSecret")
    logged_in = service.login("learner@example.com", "Sup3rSecret")

    assert created.id == logged_in.id
    assert logged_in.role == "USER"


def test_register_duplicate_is_case_insensitive(service: AccountService) -> None:
    service.register("learner@example.com", "Sup3rSecret")

    with pytest.raises(ConflictAppError):
        service.register("Learner@Example.com", "Sup3rSecret")


def test_register_rejects_weak_password_before_touching_store(service: AccountService) -> None:
    with pytest.raises(ValidationAppError):
        service.register("learner@example.com", "weak")

    assert len(service.store) == 0


def test_login_unknown_user_and_bad_password_look_the_same(service: AccountService) -> None:
    service.register("learner@example.com", "Sup3rSecret")

    with pytest.raises(AuthenticationAppError) as unknown:
        service.login("ghost@example.com", "Sup3rSecret")
    with pytest.raises(AuthenticationAppError) as bad_password:
        service.login("learner@example.com", "Wr0ngPassword")

    assert unknown.value.code == bad_password.value.code == "invalid_credentials"
    assert unknown.value.message == bad_password.value.message


def test_password_reset_message_does_not_reveal_account(service: AccountService) -> None:
    service.register("learner@example.com", "Sup3rSecret")

    assert service.request_password_reset("learner@example.com") == RESET_REQUESTED_MESSAGE
    assert service.request_password_reset("ghost@example.com") == RESET_REQUESTED_MESSAGE


def test_change_password(service: AccountService) -> None:
    service.register("learner@example.com", "Sup3rSecret")

    service.change_password("learner@example.com", "Sup3rSecret", "N3wPassword")

    with pytest.raises(AuthenticationAppError):
        service.login("learner@example.com", "Sup3rSecret")
    assert service.login("learner@example.com", "N3wPassword").email == "learner@example.com"


def test_change_password_requires_current_password(service: AccountService) -> None:
    service.register("learner@example.com", "Sup3rSecret")

    with pytest.raises(AuthenticationAppError):
        service.change_password("learner@example.com", "Wr0ngPassword", "N3wPassword")


def test_verify_password_rejects_input_longer_than_bcrypt_accepts() -> None:
    hashed = hash_password("Sup3rSecret")

    assert verify_password("Sup3rSecret" + "x" * 80, hashed) is False


def test_login_with_over_long_password_is_invalid_credentials(seeded_store: UserStore) -> None:
    service = AccountService(store=seeded_store)

    with pytest.raises(AuthenticationAppError) as exc_info:
        service.login("user@example.com", "Aa1" + "x" * 80)

    assert exc_info.value.code == "invalid_credentials"


def test_register_rejects_over_long_password(service: AccountService) -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        service.register("learner@example.com", "Aa1" + "x" * 80)

    assert exc_info.value.code == "password_too_long"
    assert len(service.store) == 0


def test_change_password_with_over_long_inputs(service: AccountService) -> None:
    service.register("learner@example.com", "Sup3rSecret")

    with pytest.raises(AuthenticationAppError):
        service.change_password("learner@example.com", "Aa1" + "x" * 80, "N3wPassword")
    with pytest.raises(ValidationAppError) as exc_info:
        service.change_password("learner@example.com", "Sup3rSecret", "Aa1" + "x" * 80)

    assert exc_info.value.details == {"field": "new_password"}
