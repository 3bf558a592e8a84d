"""Authorization Engine — effective permissions and derived decisions for a principal.

Invariants:
    - All functions are PURE: principals are frozen, no shared mutable state
    - Precedence: administrator override > custom-role binding > system-role fallback
    - Administrators pass every check without consulting effective_permissions
    - Conversation ranking is evaluated broadest-first, first match wins

Design Decisions:
    - Pattern matching on the PrincipalRole union instead of a permissions
      accessor overridden on a membership base class
    - 'agent' (no custom role) and 'none' (custom role without conversation
      permission) stay distinct levels
"""

from typing import Iterable, Mapping

from custom_roles.core.domain_types import (
    CUSTOM_ROLE_TAG,
    ConversationPermissionLevel,
    ConversationScope,
    CustomBinding,
    PermissionId,
    Principal,
    RoleSnapshot,
    SystemBinding,
    SystemRole,
)
from custom_roles.core.permission_catalog import humanize_identifier

CONVERSATION_MANAGE = "conversation_manage"
CONVERSATION_UNASSIGNED_MANAGE = "conversation_unassigned_manage"
CONVERSATION_PARTICIPATING_MANAGE = "conversation_participating_manage"

# Broadest first: the order is the tie-break when a role carries several
CONVERSATION_RANKING: tuple[tuple[PermissionId, ConversationPermissionLevel], ...] = (
    (CONVERSATION_MANAGE, ConversationPermissionLevel.MANAGE_ALL),
    (CONVERSATION_UNASSIGNED_MANAGE, ConversationPermissionLevel.MANAGE_UNASSIGNED),
    (CONVERSATION_PARTICIPATING_MANAGE, ConversationPermissionLevel.MANAGE_PARTICIPATING),
)

# Permissions that cover each scope; broader permissions imply narrower scopes
SCOPE_GRANTS: Mapping[ConversationScope, frozenset[PermissionId]] = {
    ConversationScope.ALL: frozenset({CONVERSATION_MANAGE}),
    ConversationScope.UNASSIGNED: frozenset({
        CONVERSATION_MANAGE, CONVERSATION_UNASSIGNED_MANAGE,
    }),
    ConversationScope.PARTICIPATING: frozenset({
        CONVERSATION_MANAGE,
        CONVERSATION_UNASSIGNED_MANAGE,
        CONVERSATION_PARTICIPATING_MANAGE,
    }),
}


def is_administrator(principal: Principal) -> bool:
    match principal.binding:
        case SystemBinding(role=SystemRole.ADMINISTRATOR):
            return True
        case _:
            return False


def custom_role_of(principal: Principal) -> RoleSnapshot | None:
    match principal.binding:
        case CustomBinding(role=role):
            return role
        case _:
            return None


def effective_permissions(principal: Principal) -> frozenset[str]:
    """Resolved capability set.

    For administrators the result is the {'administrator'} marker, which denotes
    full authority; checks must use is_administrator rather than this set.
    """
    match principal.binding:
        case CustomBinding(role=role):
            return frozenset(role.permissions) | {CUSTOM_ROLE_TAG}
        case SystemBinding(role=role):
            return frozenset({role.value})
    raise TypeError(f"Unknown principal binding: {principal.binding!r}")


def has_permission(principal: Principal, permission: PermissionId) -> bool:
    if is_administrator(principal):
        return True
    return str(permission) in effective_permissions(principal)


def role_conversation_permission_level(
    permissions: Iterable[PermissionId],
) -> ConversationPermissionLevel:
    """Ranking over a role's own permissions (no principal context)."""
    granted = {str(p) for p in permissions}
    for permission, level in CONVERSATION_RANKING:
        if permission in granted:
            return level
    return ConversationPermissionLevel.NONE


def conversation_permission_level(
    principal: Principal,
) -> ConversationPermissionLevel:
    match principal.binding:
        case SystemBinding(role=SystemRole.ADMINISTRATOR):
            return ConversationPermissionLevel.ADMINISTRATOR
        case CustomBinding(role=role):
            return role_conversation_permission_level(role.permissions)
        case _:
            return ConversationPermissionLevel.AGENT


def can_manage_conversations(
    principal: Principal,
    scope: ConversationScope | str = ConversationScope.PARTICIPATING,
) -> bool:
    """Whether the principal's conversation capability covers `scope`."""
    if is_administrator(principal):
        return True
    try:
        scope = ConversationScope(scope)
    except ValueError:
        return False
    role = custom_role_of(principal)
    if role is None:
        return False
    return not SCOPE_GRANTS[scope].isdisjoint(role.permissions)


def can_manage_contacts(principal: Principal) -> bool:
    return has_permission(principal, "contact_manage")


def can_manage_reports(principal: Principal) -> bool:
    return has_permission(principal, "report_manage")


def can_manage_knowledge_base(principal: Principal) -> bool:
    return has_permission(principal, "knowledge_base_manage")


def effective_role(principal: Principal) -> str:
    """'custom_role' for custom-bound principals, else the system role tag."""
    match principal.binding:
        case CustomBinding():
            return CUSTOM_ROLE_TAG
        case SystemBinding(role=role):
            return role.value
    raise TypeError(f"Unknown principal binding: {principal.binding!r}")


def role_display_name(principal: Principal) -> str:
    role = custom_role_of(principal)
    if role is not None:
        return role.name
    return humanize_identifier(effective_role(principal))
