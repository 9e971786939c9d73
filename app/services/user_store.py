"""In-memory user store with bcrypt password hashing.

Stands in for the relational users table. Seeded with the demo accounts the
frontend expects (``user@example.com`` and ``admin@example.com``).
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass

import bcrypt

from app.schemas.auth import Role, UserSummary
from app.utils.credential_validators import password_fits_hash

DEMO_PASSWORD = "password"


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    """Check ``plain`` against ``hashed``. Over-long input never matches."""
    if not password_fits_hash(plain):
        return False
    return bcrypt.checkpw(plain.encode(), hashed.encode())


@dataclass
class UserRecord:
    id: str
    email: str
    password_hash: str
    role: Role = "USER"
    is_verified: bool = True

    def to_summary(self) -> UserSummary:
        return UserSummary(
            id=self.id,
            email=self.email,
            role=self.role,
            is_verified=self.is_verified,
        )


class UserStore:
    """Thread-safe mapping of normalized email to user record."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: dict[str, UserRecord] = {}

    @staticmethod
    def _normalize(email: str) -> str:
        return email.strip().lower()

    def get_by_email(self, email: str) -> UserRecord | None:
        with self._lock:
            return self._users.get(self._normalize(email))

    def create(self, email: str, password: str, *, role: Role = "USER") -> UserRecord | None:
        """Create a user, or return None if the email is already taken."""
        password_hash = hash_password(password)
        with self._lock:
            normalized = self._normalize(email)
            if normalized in self._users:
                return None
            record = UserRecord(
                id=f"user-{uuid.uuid4().hex[:12]}",
                email=email.strip(),
                password_hash=password_hash,
                role=role,
            )
            self._users[normalized] = record
            return record

    def set_password(self, email: str, password: str) -> bool:
        password_hash = hash_password(password)
        with self._lock:
            record = self._users.get(self._normalize(email))
            if record is None:
                return False
            record.password_hash = password_hash
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)


def build_seeded_store() -> UserStore:
    """Return a store containing the demo user and admin accounts."""
    store = UserStore()
    store.create("user@example.com", DEMO_PASSWORD, role="USER")
    store.create("admin@example.com", DEMO_PASSWORD, role="ADMIN")
    return store
