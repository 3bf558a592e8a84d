"""Permission Catalog — frozen registry of custom-role permissions.

Invariants:
    - PERMISSIONS order is the canonical display and storage order
    - Every permission belongs to exactly one PermissionCategory
    - Categories in EXCLUSIVE_CATEGORIES allow at most one permission per role
    - Registry is immutable (tuple + MappingProxyType), never process state

Design Decisions:
    - Frozen dataclass definitions in a tuple, indexed by key in a read-only
      mapping: the catalog is code, so lookups never touch the database
    - catalog_payload() is the only presentation mirror: the HTTP layer serves it
      as-is so the UI catalog cannot drift from this module
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from custom_roles.core.domain_types import PermissionCategory, PermissionId


@dataclass(frozen=True)
class PermissionDefinition:
    """A permission entry in the catalog."""
    key: PermissionId
    category: PermissionCategory
    description: str


PERMISSIONS: tuple[PermissionDefinition, ...] = (
    # Conversation permissions (mutually exclusive) -----------------------
    PermissionDefinition(
        key="conversation_manage",
        category=PermissionCategory.CONVERSATION,
        description="Can manage all conversations within assigned inboxes",
    ),
    PermissionDefinition(
        key="conversation_unassigned_manage",
        category=PermissionCategory.CONVERSATION,
        description="Can manage unassigned conversations and those assigned to them",
    ),
    PermissionDefinition(
        key="conversation_participating_manage",
        category=PermissionCategory.CONVERSATION,
        description="Can manage conversations they are participating in or assigned to",
    ),
    # Management permissions (independent) --------------------------------
    PermissionDefinition(
        key="contact_manage",
        category=PermissionCategory.MANAGEMENT,
        description="Can create, update, and manage contacts",
    ),
    PermissionDefinition(
        key="report_manage",
        category=PermissionCategory.MANAGEMENT,
        description="Can access and view reports and analytics",
    ),
    PermissionDefinition(
        key="knowledge_base_manage",
        category=PermissionCategory.MANAGEMENT,
        description="Can create, edit, and manage knowledge base articles and portals",
    ),
)

PERMISSION_REGISTRY: Mapping[PermissionId, PermissionDefinition] = MappingProxyType(
    {definition.key: definition for definition in PERMISSIONS}
)

PERMISSION_IDS: tuple[PermissionId, ...] = tuple(d.key for d in PERMISSIONS)

EXCLUSIVE_CATEGORIES: frozenset[PermissionCategory] = frozenset(
    {PermissionCategory.CONVERSATION}
)

_SEPARATORS = re.compile(r"[\s_.\-]+")


def permission_ids() -> tuple[PermissionId, ...]:
    """All permission ids in catalog order."""
    return PERMISSION_IDS


def is_registered(permission: PermissionId) -> bool:
    return str(permission) in PERMISSION_REGISTRY


def category_of(permission: PermissionId) -> PermissionCategory | None:
    """Category of a permission, None when the id is not registered."""
    definition = PERMISSION_REGISTRY.get(str(permission))
    return definition.category if definition else None


def permissions_in_category(
    category: PermissionCategory,
) -> tuple[PermissionId, ...]:
    return tuple(d.key for d in PERMISSIONS if d.category == category)


def is_exclusive(category: PermissionCategory) -> bool:
    return category in EXCLUSIVE_CATEGORIES


def humanize_identifier(identifier: str) -> str:
    """Deterministic display form: 'knowledge_base_manage' -> 'Knowledge Base Manage'."""
    words = [w for w in _SEPARATORS.split(str(identifier).strip()) if w]
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


def permission_description(permission: PermissionId) -> str:
    """Registered description, or the humanized id when none is registered."""
    definition = PERMISSION_REGISTRY.get(str(permission))
    if definition is not None:
        return definition.description
    return humanize_identifier(str(permission))


def in_catalog_order(
    permissions: Iterable[PermissionId],
) -> list[PermissionId]:
    """Registered permissions from `permissions`, deduplicated, in catalog order."""
    wanted = {str(p) for p in permissions}
    return [key for key in PERMISSION_IDS if key in wanted]


def permissions_by_category(
    permissions: Iterable[PermissionId],
) -> dict[str, list[PermissionId]]:
    """Group permissions by category value; empty categories omitted."""
    ordered = in_catalog_order(permissions)
    grouped: dict[str, list[PermissionId]] = {}
    for category in PermissionCategory:
        members = [
            p for p in ordered
            if PERMISSION_REGISTRY[p].category == category
        ]
        if members:
            grouped[category.value] = members
    return grouped


def catalog_payload() -> dict:
    """Presentation mirror of the catalog (ids, descriptions, categories)."""
    return {
        "permissions": list(PERMISSION_IDS),
        "descriptions": {d.key: d.description for d in PERMISSIONS},
        "categories": {
            category.value: list(permissions_in_category(category))
            for category in PermissionCategory
        },
        "exclusive_categories": sorted(c.value for c in EXCLUSIVE_CATEGORIES),
    }
