"""Role Validation — structural and semantic checks on a role draft.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Every check runs; violations are collected per field, never short-circuited
    - Return ValidationFailed on violation, None on success
    - Name uniqueness excludes the role being updated (existing_role_id)

Design Decisions:
    - Sibling names passed in by the shell: the coordinator reads them inside the
      same transaction as the write, the validator stays pure
    - Typed result over exception: a business-rule failure is a normal outcome
      that callers surface per field
"""

from dataclasses import dataclass, field
from typing import Mapping

from custom_roles.core.domain_types import PermissionCategory, RoleDraft, RoleId
from custom_roles.core.permission_catalog import (
    EXCLUSIVE_CATEGORIES,
    category_of,
    in_catalog_order,
    is_registered,
)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
DESCRIPTION_MIN_LENGTH = 1
DESCRIPTION_MAX_LENGTH = 500

BLANK = "can't be blank"
NAME_TAKEN = "must be unique within account"
NO_PERMISSIONS = "at least one permission must be selected"

FieldErrors = dict[str, list[str]]


@dataclass(frozen=True)
class ValidationFailed:
    """Field -> messages map for a rejected draft."""
    field_errors: Mapping[str, list[str]] = field(default_factory=dict)

    def full_messages(self) -> list[str]:
        return [
            f"{name.replace('_', ' ').capitalize()} {message}"
            if name != "base" else message
            for name, messages in self.field_errors.items()
            for message in messages
        ]

    def to_dict(self) -> FieldErrors:
        return {name: list(messages) for name, messages in self.field_errors.items()}


def _check_length(value: str | None, minimum: int, maximum: int) -> list[str]:
    if value is None or not value.strip():
        return [BLANK]
    length = len(value.strip())
    if length < minimum:
        return [f"is too short (minimum is {minimum} characters)"]
    if length > maximum:
        return [f"is too long (maximum is {maximum} characters)"]
    return []


def check_name(name: str | None) -> list[str]:
    return _check_length(name, NAME_MIN_LENGTH, NAME_MAX_LENGTH)


def check_description(description: str | None) -> list[str]:
    return _check_length(description, DESCRIPTION_MIN_LENGTH, DESCRIPTION_MAX_LENGTH)


def check_permissions(permissions: tuple[str, ...] | None) -> list[str]:
    """Non-empty, all registered, at most one per exclusive category."""
    if not permissions:
        return [NO_PERMISSIONS]

    errors = []
    invalid = list(dict.fromkeys(p for p in permissions if not is_registered(p)))
    if invalid:
        errors.append(f"contains invalid permissions: {', '.join(invalid)}")

    for category in sorted(EXCLUSIVE_CATEGORIES, key=lambda c: c.value):
        errors.extend(_check_exclusive(permissions, category))
    return errors


def _check_exclusive(
    permissions: tuple[str, ...], category: PermissionCategory,
) -> list[str]:
    members = [p for p in in_catalog_order(permissions) if category_of(p) == category]
    if len(members) <= 1:
        return []
    return [
        f"cannot combine multiple permissions from the {category.value} category "
        f"({', '.join(members)}). Please select only one."
    ]


def check_name_unique(
    name: str | None,
    sibling_names: Mapping[RoleId, str],
    existing_role_id: RoleId | None = None,
) -> list[str]:
    """Name must not collide with another role of the same account."""
    if not name or not name.strip():
        return []
    wanted = name.strip()
    for role_id, sibling in sibling_names.items():
        if role_id != existing_role_id and sibling.strip() == wanted:
            return [NAME_TAKEN]
    return []


def validate_role_draft(
    draft: RoleDraft,
    sibling_names: Mapping[RoleId, str],
    existing_role_id: RoleId | None = None,
) -> ValidationFailed | None:
    """Run every check on a draft. Returns all violations or None."""
    draft = draft.normalized()
    errors: FieldErrors = {}
    name_errors = check_name(draft.name) + check_name_unique(
        draft.name, sibling_names, existing_role_id,
    )
    if name_errors:
        errors["name"] = name_errors
    description_errors = check_description(draft.description)
    if description_errors:
        errors["description"] = description_errors
    permission_errors = check_permissions(draft.permissions)
    if permission_errors:
        errors["permissions"] = permission_errors
    return ValidationFailed(errors) if errors else None


def name_taken_failure() -> ValidationFailed:
    """Same failure a pre-check reports, for a uniqueness race lost at write time."""
    return ValidationFailed({"name": [NAME_TAKEN]})
