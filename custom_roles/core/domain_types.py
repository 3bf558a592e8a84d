"""Domain Types — identities, enums and the principal role union.

Invariants:
    - AccountId, RoleId, PrincipalId wrap UUIDs — never use bare UUID in domain logic
    - A principal's binding is EITHER a system role OR a custom role, never both
    - A custom-role binding always references a role of the principal's own account
    - RoleSnapshot and Principal are frozen: authorization reads share no mutable state

Design Decisions:
    - PrincipalRole as a tagged union (SystemBinding | CustomBinding): administrator
      plus custom role is unrepresentable, so no override of a permissions accessor
      is needed anywhere
    - str Enums: serialize to JSON without custom encoders
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType, Union
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

AccountId = NewType("AccountId", UUID)
RoleId = NewType("RoleId", UUID)
PrincipalId = NewType("PrincipalId", UUID)

PermissionId = str

# Marker added to the effective permissions of custom-role principals
CUSTOM_ROLE_TAG = "custom_role"


# ─── Enums ───────────────────────────────────────────────────────

class SystemRole(str, Enum):
    """Built-in account roles — maps to the account_users `role` column."""
    ADMINISTRATOR = "administrator"
    AGENT = "agent"


class PermissionCategory(str, Enum):
    """Permission groupings — conversation is mutually exclusive."""
    CONVERSATION = "conversation"
    MANAGEMENT = "management"


class ConversationScope(str, Enum):
    """Conversation sets a principal may ask to manage, broadest first."""
    ALL = "all"
    UNASSIGNED = "unassigned"
    PARTICIPATING = "participating"


class ConversationPermissionLevel(str, Enum):
    """Conversation capability level consumed by the dashboard."""
    ADMINISTRATOR = "administrator"
    MANAGE_ALL = "manage_all"
    MANAGE_UNASSIGNED = "manage_unassigned"
    MANAGE_PARTICIPATING = "manage_participating"
    AGENT = "agent"
    NONE = "none"


# ─── Value Objects ───────────────────────────────────────────────

@dataclass(frozen=True)
class RoleSnapshot:
    """Immutable view of a persisted custom role."""
    id: RoleId
    account_id: AccountId
    name: str
    description: str
    permissions: frozenset[PermissionId]
    is_system: bool = False

    def has_permission(self, permission: PermissionId) -> bool:
        return str(permission) in self.permissions


@dataclass(frozen=True)
class RoleDraft:
    """Caller-submitted role fields. None means the field was not supplied."""
    name: str | None = None
    description: str | None = None
    permissions: tuple[PermissionId, ...] | None = None

    def normalized(self) -> "RoleDraft":
        """Trim text fields and collapse duplicate permission ids."""
        return RoleDraft(
            name=self.name.strip() if isinstance(self.name, str) else self.name,
            description=(
                self.description.strip()
                if isinstance(self.description, str) else self.description
            ),
            permissions=(
                tuple(dict.fromkeys(str(p).strip() for p in self.permissions))
                if self.permissions is not None else None
            ),
        )

    def merged_onto(self, role: RoleSnapshot) -> "RoleDraft":
        """Fill omitted fields from an existing role (partial update)."""
        return RoleDraft(
            name=self.name if self.name is not None else role.name,
            description=(
                self.description if self.description is not None
                else role.description
            ),
            permissions=(
                self.permissions if self.permissions is not None
                else tuple(role.permissions)
            ),
        )


@dataclass(frozen=True)
class SystemBinding:
    """Principal bound to a built-in role."""
    role: SystemRole


@dataclass(frozen=True)
class CustomBinding:
    """Principal bound to an account custom role (base system role is agent)."""
    role: RoleSnapshot


PrincipalRole = Union[SystemBinding, CustomBinding]


@dataclass(frozen=True)
class Principal:
    """An account-scoped user membership subject to authorization."""
    id: PrincipalId
    account_id: AccountId
    binding: PrincipalRole

    def __post_init__(self):
        if (
            isinstance(self.binding, CustomBinding)
            and self.binding.role.account_id != self.account_id
        ):
            raise ValueError("custom role must belong to the principal's account")
