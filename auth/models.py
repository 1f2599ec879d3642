"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors core/models.py:
dataclasses own domain shape; the directory and routes do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered account, held only in process memory.

    role is a role *name* registered in the PermissionRegistry (e.g.
    "defaultUser"), never a role type. Whatever a user may do is decided by
    the registry from that name.
    """

    username: str
    hashed_password: str
    role: str
    email: str = ""
    id: int | None = None  # allocated by an IdGenerator before create_user()
    created_at: str | None = None
    is_active: bool = True
