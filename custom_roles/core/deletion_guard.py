"""Deletion Guard — decides whether a custom role may be removed.

Invariants:
    - A role is deletable iff zero principal bindings reference it
    - authorize_deletion never mutates; a refusal carries the exact bound count
"""

from dataclasses import dataclass

from custom_roles.core.domain_types import RoleId


@dataclass(frozen=True)
class RoleInUse:
    """Deletion refused: principals are still bound to the role."""
    role_id: RoleId
    bound_count: int

    @property
    def message(self) -> str:
        return (
            "Cannot delete custom role as it has users assigned to it. "
            "Please reassign users before deleting."
        )


def is_deletable(bound_count: int) -> bool:
    return bound_count == 0


def authorize_deletion(role_id: RoleId, bound_count: int) -> RoleInUse | None:
    """None when the role can go, RoleInUse(bound_count) otherwise."""
    if is_deletable(bound_count):
        return None
    return RoleInUse(role_id=role_id, bound_count=bound_count)
