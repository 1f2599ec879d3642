"""
auth/registry.py -- In-memory RBAC registry: role name -> Role.

Pattern: Repository over a plain dict, guarded by a reader/writer lock.
  Reads (check_permission, get_role_permissions, has_role, role_names) run in
  parallel with each other. Writes (add_role, remove_role) exclude everything.
  Only dict operations happen under the lock -- no I/O, no hashing.

Decision rules:
  - Permissions belong to a role *name*. Role type is metadata and is never
    consulted during a check.
  - A check succeeds iff the role holds an entry whose (resource, action)
    pair is exactly equal to the request. No wildcards, no hierarchy.
  - Vocabulary validity is checked before the lock is taken, so invalid
    input never touches registry state.

Copy-on-write and copy-on-read: add_role stores its own list, and
get_role_permissions hands out a fresh one. Permission is frozen, so a
shallow copy is enough to keep callers out of the registry's internals.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace

from auth.errors import InvalidAction, InvalidResource, PermissionDenied, RoleNotFound
from core.models import ActionType, Permission, ResourceType, Role, RoleType


class _ReadWriteLock:
    """Many readers or one writer. Waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _validated(resource: object, action: object) -> tuple[ResourceType, ActionType]:
    if not ResourceType.is_valid(resource):
        raise InvalidResource(resource)
    if not ActionType.is_valid(action):
        raise InvalidAction(action)
    return ResourceType(resource), ActionType(action)


class PermissionRegistry:
    """Concurrency-safe role store with a deterministic permission check.

    Usage:
        registry = PermissionRegistry()
        registry.add_role(Role(name="auditor", permissions=[Permission(ResourceType.LOG, ActionType.READ)]))
        registry.check_permission("auditor", "log", "read")   # returns None
        registry.check_permission("auditor", "log", "write")  # raises PermissionDenied
    """

    def __init__(self) -> None:
        self._roles: dict[str, Role] = {}
        self._lock = _ReadWriteLock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_role(self, role: Role) -> list[Permission]:
        """Insert or fully replace the role keyed by role.name.

        All-or-nothing: every permission is validated first; on the first
        invalid value InvalidResource / InvalidAction is raised and the
        registry is left untouched.

        Returns a copy of the permissions exactly as stored, so a caller can
        report what it wrote without a second lookup racing other writers.
        """
        permissions = []
        for perm in role.permissions:
            resource, action = _validated(perm.resource, perm.action)
            permissions.append(Permission(resource=resource, action=action, description=perm.description))
        stored = replace(role, permissions=permissions)

        with self._lock.write_locked():
            self._roles[role.name] = stored
        return list(permissions)

    def remove_role(self, name: str) -> None:
        """Delete the role if present. Idempotent."""
        with self._lock.write_locked():
            self._roles.pop(name, None)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def has_role(self, name: str) -> bool:
        with self._lock.read_locked():
            return name in self._roles

    def role_names(self) -> list[str]:
        with self._lock.read_locked():
            return sorted(self._roles)

    def get_role_permissions(self, name: str) -> list[Permission]:
        """Return a copy of the role's permissions. Raises RoleNotFound."""
        with self._lock.read_locked():
            role = self._roles.get(name)
            if role is None:
                raise RoleNotFound(name)
            return list(role.permissions)

    def check_permission(self, role_name: str, resource: object, action: object) -> None:
        """Return None if role_name may perform action on resource.

        Raises InvalidResource / InvalidAction for values outside the
        vocabulary, RoleNotFound for an unknown role, and PermissionDenied
        when no permission matches exactly.
        """
        resource, action = _validated(resource, action)

        with self._lock.read_locked():
            role = self._roles.get(role_name)
            if role is None:
                raise RoleNotFound(role_name)
            for perm in role.permissions:
                if perm.resource == resource and perm.action == action:
                    return

        raise PermissionDenied(role_name, resource, action)


# ---------------------------------------------------------------------------
# Built-in roles
# ---------------------------------------------------------------------------

DEFAULT_USER_ROLE = Role(
    name="defaultUser",
    type=RoleType.USER,
    description="Baseline role for self-registered accounts.",
    permissions=[
        Permission(ResourceType.PRODUCT, ActionType.READ),
    ],
)

DEFAULT_ADMIN_ROLE = Role(
    name="defaultAdmin",
    type=RoleType.ADMIN,
    description="Bootstrap administrator.",
    permissions=[
        Permission(ResourceType.PRODUCT, ActionType.WRITE),
        Permission(ResourceType.USER, ActionType.WRITE),
        # Administration grants used by the HTTP layer.
        Permission(ResourceType.USER, ActionType.LIST, "List registered users"),
        Permission(ResourceType.ROLE, ActionType.READ, "Inspect roles"),
        Permission(ResourceType.ROLE, ActionType.WRITE, "Create, replace and delete roles"),
    ],
)


def seed_default_roles(registry: PermissionRegistry) -> None:
    """Register the built-in roles. Overwrites any existing role of the same name."""
    for role in (DEFAULT_USER_ROLE, DEFAULT_ADMIN_ROLE):
        registry.add_role(role)
