"""Role Lifecycle — list, read, create, update and delete custom roles.

Invariants:
    - Validation and write happen in ONE transaction (sibling names read in it)
    - A unique-name violation at commit (race lost) returns the same ValidationFailed
      as the pre-check; any other IntegrityError propagates
    - Deletion locks the role row, counts bindings and deletes in one transaction
    - Roles of another account are reported exactly like missing roles

Design Decisions:
    - Coordinator owns the AsyncSession; core/ makes every decision
    - Typed results (ValidationFailed, RoleInUse) over exceptions for business rules
"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from custom_roles.core.deletion_guard import RoleInUse, authorize_deletion, is_deletable
from custom_roles.core.domain_types import AccountId, RoleDraft, RoleId, RoleSnapshot
from custom_roles.core.errors import RoleNotFoundError
from custom_roles.core.permission_catalog import in_catalog_order
from custom_roles.core.validate_role import (
    ValidationFailed,
    name_taken_failure,
    validate_role_draft,
)
from custom_roles.models.account_user import AccountUser
from custom_roles.models.custom_role import CustomRole

logger = logging.getLogger(__name__)


def to_role_snapshot(role: CustomRole) -> RoleSnapshot:
    """ORM row -> immutable core value."""
    return RoleSnapshot(
        id=RoleId(role.id),
        account_id=AccountId(role.account_id),
        name=role.name,
        description=role.description,
        permissions=frozenset(role.permissions or ()),
        is_system=role.is_system,
    )


class RoleLifecycleCoordinator:
    """Create/update/delete flows for custom roles, composed over core/."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Reads ───────────────────────────────────────────────────

    async def list_roles(self, account_id: UUID) -> list[CustomRole]:
        """All roles of an account, ordered by name."""
        result = await self.db.execute(
            select(CustomRole)
            .where(CustomRole.account_id == account_id)
            .order_by(CustomRole.name),
        )
        return list(result.scalars().all())

    async def get_role(self, account_id: UUID, role_id: UUID) -> CustomRole:
        """Role by id within the account; RoleNotFoundError otherwise."""
        result = await self.db.execute(
            select(CustomRole).where(
                CustomRole.id == role_id, CustomRole.account_id == account_id,
            ),
        )
        role = result.scalar_one_or_none()
        if role is None:
            raise RoleNotFoundError(str(role_id))
        return role

    async def count_bound_principals(self, role_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(AccountUser)
            .where(AccountUser.custom_role_id == role_id),
        )
        return int(result.scalar_one())

    async def bound_counts(self, role_ids: list[UUID]) -> dict[UUID, int]:
        """Bound-principal count per role (zero for unbound roles)."""
        if not role_ids:
            return {}
        result = await self.db.execute(
            select(AccountUser.custom_role_id, func.count())
            .where(AccountUser.custom_role_id.in_(role_ids))
            .group_by(AccountUser.custom_role_id),
        )
        counts = {role_id: 0 for role_id in role_ids}
        counts.update({role_id: int(n) for role_id, n in result.all()})
        return counts

    async def is_deletable(self, role: CustomRole) -> bool:
        return is_deletable(await self.count_bound_principals(role.id))

    async def _sibling_names(self, account_id: UUID) -> dict[RoleId, str]:
        result = await self.db.execute(
            select(CustomRole.id, CustomRole.name)
            .where(CustomRole.account_id == account_id),
        )
        return {RoleId(role_id): name for role_id, name in result.all()}

    # ─── Writes ──────────────────────────────────────────────────

    async def create_role(
        self, account_id: UUID, draft: RoleDraft,
    ) -> CustomRole | ValidationFailed:
        """Validate and insert atomically."""
        draft = draft.normalized()
        siblings = await self._sibling_names(account_id)
        failure = validate_role_draft(draft, siblings)
        if failure is not None:
            await self.db.commit()
            logger.info(
                "Custom role rejected",
                extra={"account_id": account_id, "error_code": "VALIDATION_FAILED"},
            )
            return failure

        role = CustomRole(
            account_id=account_id,
            name=draft.name,
            description=draft.description,
            permissions=in_catalog_order(draft.permissions),
        )
        self.db.add(role)
        race = await self._commit_or_name_taken(account_id, draft.name)
        if race is not None:
            return race
        await self.db.refresh(role)
        logger.info(
            f"Custom role '{role.name}' created",
            extra={"account_id": account_id, "role_id": role.id},
        )
        return role

    async def update_role(
        self, role: CustomRole, draft: RoleDraft,
    ) -> CustomRole | ValidationFailed:
        """Re-validate (self excluded from uniqueness) and persist the diff."""
        draft = draft.normalized().merged_onto(to_role_snapshot(role)).normalized()
        siblings = await self._sibling_names(role.account_id)
        failure = validate_role_draft(draft, siblings, existing_role_id=RoleId(role.id))
        if failure is not None:
            await self.db.commit()
            logger.info(
                "Custom role update rejected",
                extra={"role_id": role.id, "error_code": "VALIDATION_FAILED"},
            )
            return failure

        role.name = draft.name
        role.description = draft.description
        role.permissions = in_catalog_order(draft.permissions)
        race = await self._commit_or_name_taken(role.account_id, draft.name)
        if race is not None:
            return race
        await self.db.refresh(role)
        logger.info(
            f"Custom role '{role.name}' updated",
            extra={"account_id": role.account_id, "role_id": role.id},
        )
        return role

    async def delete_role(self, role: CustomRole) -> RoleInUse | None:
        """Delete when no principal is bound; RoleInUse(count) otherwise."""
        # Row lock: a concurrent binding cannot slip in between count and delete
        await self.db.execute(
            select(CustomRole.id).where(CustomRole.id == role.id).with_for_update(),
        )
        bound = await self.count_bound_principals(role.id)
        in_use = authorize_deletion(RoleId(role.id), bound)
        if in_use is not None:
            await self.db.commit()
            logger.info(
                "Custom role deletion blocked",
                extra={"role_id": role.id, "bound_count": bound},
            )
            return in_use

        await self.db.delete(role)
        await self.db.commit()
        logger.info(
            f"Custom role '{role.name}' deleted",
            extra={"account_id": role.account_id, "role_id": role.id},
        )
        return None

    async def _commit_or_name_taken(
        self, account_id: UUID, name: str,
    ) -> ValidationFailed | None:
        """Commit; map a lost uniqueness race to the pre-check's failure."""
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if name in (await self._sibling_names(account_id)).values():
                logger.warning(
                    "Custom role name taken by a concurrent write",
                    extra={"account_id": account_id, "error_code": "VALIDATION_FAILED"},
                )
                return name_taken_failure()
            raise
        return None
