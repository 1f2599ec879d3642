"""
auth/store.py -- In-memory user directory.

Pattern: Repository. UserDirectory owns the only references to User records;
route code never touches the dicts directly. Records are copied on the way in
and on the way out so callers cannot edit a stored account in place.

Persistence: none. A restart forgets every account, the same way it forgets
every registered role and every issued token.

Concurrency: a single threading.Lock around dict operations. Password hashing
happens in the caller *before* create_user() so the lock is never held across
a bcrypt call.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone

from auth.errors import PasswordMismatch, UsernameTaken
from auth.models import User
from auth.tokens import CredentialService


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserDirectory:
    """Usage:
    directory = UserDirectory()
    directory.create_user(User(id=1, username="admin", hashed_password=h, role="defaultAdmin"))
    user = directory.get_by_username("admin")
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_id: dict[int, User] = {}
        self._by_username: dict[str, int] = {}

    def create_user(self, user: User, *, first_user_role: str | None = None) -> User:
        """Store user and return the stored copy.

        first_user_role, when given, replaces user.role if the directory is
        still empty. The emptiness check and the insert share one critical
        section, so two concurrent first registrations cannot both become
        the bootstrap account.

        Raises UsernameTaken on a duplicate username and ValueError if the
        user has no id.
        """
        if user.id is None:
            raise ValueError("user.id must be allocated before create_user()")
        with self._lock:
            if user.username in self._by_username:
                raise UsernameTaken(user.username)
            role = first_user_role if first_user_role and not self._by_id else user.role
            stored = replace(user, role=role, created_at=user.created_at or _now_iso())
            self._by_id[stored.id] = stored
            self._by_username[stored.username] = stored.id
            return replace(stored)

    def get_by_id(self, user_id: int) -> User | None:
        with self._lock:
            user = self._by_id.get(user_id)
            return replace(user) if user else None

    def get_by_username(self, username: str) -> User | None:
        with self._lock:
            user_id = self._by_username.get(username)
            return replace(self._by_id[user_id]) if user_id is not None else None

    def list_users(self) -> list[User]:
        with self._lock:
            return [replace(u) for u in sorted(self._by_id.values(), key=lambda u: u.id)]

    def has_users(self) -> bool:
        with self._lock:
            return bool(self._by_id)


# ---------------------------------------------------------------------------
# Authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(
    directory: UserDirectory,
    credentials: CredentialService,
    username: str,
    password: str,
) -> User:
    """Return the user if username/password are valid, else raise PasswordMismatch.

    Always runs bcrypt whether or not the user exists:
    - Unknown username: bcrypt runs against credentials.dummy_hash
    - Wrong password: bcrypt runs against the real hash
    Unknown user, wrong password and inactive account raise the same error.
    """
    user = directory.get_by_username(username)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt.
        try:
            credentials.compare_passwords(credentials.dummy_hash, password)
        except PasswordMismatch:
            pass
        raise PasswordMismatch()
    credentials.compare_passwords(user.hashed_password, password)
    if not user.is_active:
        raise PasswordMismatch()
    return user
