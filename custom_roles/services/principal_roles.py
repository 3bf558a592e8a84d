"""Principal Roles — load principals and change their role bindings.

Invariants:
    - Becoming administrator clears the custom-role binding in the same write;
      becoming agent never touches it
    - A custom role can only be bound to a non-administrator of the same account
    - Binding takes a shared lock on the role row so a concurrent delete_role
      cannot remove it between the check and the write
    - A role change is validated against its resulting state and committed whole;
      a rejected request writes nothing

Design Decisions:
    - Principal built from rows into the PrincipalRole union once, here; the
      authorization engine only ever sees frozen core values
    - Missing and foreign-account roles produce the same field error
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from custom_roles.core.domain_types import (
    AccountId,
    CustomBinding,
    Principal,
    PrincipalId,
    SystemBinding,
    SystemRole,
)
from custom_roles.core.errors import ResourceNotFoundError
from custom_roles.core.validate_role import ValidationFailed
from custom_roles.models.account_user import AccountUser
from custom_roles.models.custom_role import CustomRole
from custom_roles.services.role_lifecycle import to_role_snapshot

logger = logging.getLogger(__name__)

ROLE_NOT_IN_ACCOUNT = "must belong to the same account"
ADMIN_WITH_CUSTOM_ROLE = (
    "cannot have both administrator role and custom role. Please choose one."
)


class PrincipalRoleBindings:
    """System-role changes and custom-role assignment for account users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_account_user(
        self, account_id: UUID, account_user_id: UUID,
    ) -> AccountUser:
        result = await self.db.execute(
            select(AccountUser).where(
                AccountUser.id == account_user_id,
                AccountUser.account_id == account_id,
            ),
        )
        account_user = result.scalar_one_or_none()
        if account_user is None:
            raise ResourceNotFoundError(
                "Account user", str(account_user_id), "ACCOUNT_USER_NOT_FOUND",
            )
        return account_user

    async def load_principal(self, account_user: AccountUser) -> Principal:
        """Resolve an account user's binding into the core Principal."""
        role = None
        if account_user.custom_role_id is not None:
            role = await self.db.get(CustomRole, account_user.custom_role_id)
        if role is not None and account_user.system_role is SystemRole.AGENT:
            binding = CustomBinding(to_role_snapshot(role))
        else:
            binding = SystemBinding(account_user.system_role)
        return Principal(
            id=PrincipalId(account_user.id),
            account_id=AccountId(account_user.account_id),
            binding=binding,
        )

    async def update_roles(
        self,
        account_user: AccountUser,
        system_role: SystemRole | None = None,
        *,
        assign: bool = False,
        custom_role_id: UUID | None = None,
    ) -> AccountUser | ValidationFailed:
        """Apply a system-role change and/or a custom-role (un)binding.

        Every rule is checked against the resulting state before anything is
        written; the change is committed whole or not at all.
        """
        target_role = system_role or account_user.system_role
        errors: dict[str, list[str]] = {}
        if assign and custom_role_id is not None:
            result = await self.db.execute(
                select(CustomRole.id)
                .where(
                    CustomRole.id == custom_role_id,
                    CustomRole.account_id == account_user.account_id,
                )
                .with_for_update(read=True),
            )
            if result.scalar_one_or_none() is None:
                errors["custom_role"] = [ROLE_NOT_IN_ACCOUNT]
            if target_role is SystemRole.ADMINISTRATOR:
                errors["base"] = [ADMIN_WITH_CUSTOM_ROLE]
        if errors:
            await self.db.commit()
            logger.info(
                "Role change rejected",
                extra={"principal_id": account_user.id, "role_id": custom_role_id},
            )
            return ValidationFailed(errors)

        previous = account_user.system_role
        account_user.role = target_role.value
        if assign:
            account_user.custom_role_id = custom_role_id
        if target_role is SystemRole.ADMINISTRATOR:
            account_user.custom_role_id = None
        await self.db.commit()

        if previous is not target_role:
            logger.info(
                f"System role changed from {previous.value} to {target_role.value}",
                extra={
                    "account_id": account_user.account_id,
                    "principal_id": account_user.id,
                },
            )
        if assign:
            logger.info(
                "Custom role assigned" if custom_role_id else "Custom role unassigned",
                extra={"principal_id": account_user.id, "role_id": custom_role_id},
            )
        return account_user

    async def change_system_role(
        self, account_user: AccountUser, role: SystemRole,
    ) -> AccountUser:
        """Set the system role; administrator clears any custom-role binding."""
        return await self.update_roles(account_user, role)

    async def promote_to_administrator(self, account_user: AccountUser) -> AccountUser:
        return await self.change_system_role(account_user, SystemRole.ADMINISTRATOR)

    async def assign_custom_role(
        self, account_user: AccountUser, role_id: UUID | None,
    ) -> AccountUser | ValidationFailed:
        """Bind (or with None, unbind) a custom role."""
        return await self.update_roles(
            account_user, assign=True, custom_role_id=role_id,
        )
