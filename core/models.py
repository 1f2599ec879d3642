from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Closed vocabularies
#
# The wire representation of every member is its literal value, so str()
# must return the value rather than "ClassName.MEMBER".
# ---------------------------------------------------------------------------


class _Vocabulary(str, Enum):
    def __str__(self) -> str:
        return self.value

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        """Return True iff value is a member or the exact literal of one."""
        try:
            cls(value)
        except (ValueError, TypeError):
            return False
        return True


class ActionType(_Vocabulary):
    # basic
    READ = "read"
    WRITE = "write"
    # special
    LIST = "list"
    EXPORT = "export"
    IMPORT = "import"
    APPROVE = "approve"


class ResourceType(_Vocabulary):
    # identity
    USER = "user"
    ROLE = "role"
    PERMISSION = "permission"
    # business
    PRODUCT = "product"
    ORDER = "order"
    CUSTOMER = "customer"
    # system
    SYSTEM = "system"
    LOG = "log"
    REPORT = "report"
    SETTING = "setting"


class RoleType(_Vocabulary):
    ADMIN = "admin"
    USER = "user"


# ---------------------------------------------------------------------------
# Domain records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Permission:
    resource: ResourceType | str
    action: ActionType | str
    description: str = ""


@dataclass
class Role:
    name: str  # identity key; several roles may share a type
    type: RoleType = RoleType.USER
    description: str = ""
    permissions: list[Permission] = field(default_factory=list)


@dataclass(frozen=True)
class Identity:
    """The subject a token is issued for. Only ever lives inside a token."""

    user_id: int
    role: str  # role *name* as registered in the PermissionRegistry
    username: str = ""
