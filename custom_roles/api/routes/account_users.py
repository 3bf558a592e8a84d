"""Account User Routes — role binding changes and authorization queries.

Invariants:
    - PATCH is administrator-only and all-or-nothing: a promotion sent with a
      custom-role binding is rejected and neither change is stored
    - GET .../permissions is available to administrators and to the principal itself
    - Authorization answers come from core/authorization only

Design Decisions:
    - Decisions serialized as flat booleans so the dashboard needs no rule copy
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from custom_roles.api.dependencies import get_current_account_user, require_administrator
from custom_roles.core import authorization
from custom_roles.core.domain_types import ConversationScope, SystemRole
from custom_roles.core.errors import AccessDeniedError, ErrorContext, RoleValidationError
from custom_roles.core.validate_role import ValidationFailed
from custom_roles.infrastructure.database import get_db
from custom_roles.models.account_user import AccountUser
from custom_roles.schemas.custom_role import (
    AccountUserResponse,
    AccountUserUpdate,
    ConversationAccess,
    PrincipalPermissionsResponse,
)
from custom_roles.services.principal_roles import PrincipalRoleBindings

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/v1/accounts/{account_id}/account_users", tags=["account_users"],
)


def _account_user_response(account_user: AccountUser) -> AccountUserResponse:
    return AccountUserResponse(
        id=account_user.id,
        account_id=account_user.account_id,
        display_name=account_user.display_name,
        role=account_user.system_role,
        custom_role_id=account_user.custom_role_id,
    )


@router.patch("/{account_user_id}", response_model=AccountUserResponse)
async def update_account_user_role(
    account_user_id: UUID,
    body: AccountUserUpdate,
    admin: AccountUser = Depends(require_administrator),
    db: AsyncSession = Depends(get_db),
):
    """Change system role and/or custom-role binding."""
    bindings = PrincipalRoleBindings(db)
    account_user = await bindings.get_account_user(admin.account_id, account_user_id)

    result = await bindings.update_roles(
        account_user,
        body.system_role,
        assign=body.assigns_custom_role,
        custom_role_id=body.custom_role_id,
    )
    if isinstance(result, ValidationFailed):
        raise RoleValidationError(
            result.to_dict(), result.full_messages(),
            ErrorContext(
                account_id=str(admin.account_id),
                principal_id=str(account_user_id),
            ),
        )
    return _account_user_response(account_user)


@router.get(
    "/{account_user_id}/permissions", response_model=PrincipalPermissionsResponse,
)
async def get_principal_permissions(
    account_user_id: UUID,
    current: AccountUser = Depends(get_current_account_user),
    db: AsyncSession = Depends(get_db),
):
    """Effective permissions and derived decisions for one principal."""
    if current.id != account_user_id and current.system_role is not SystemRole.ADMINISTRATOR:
        raise AccessDeniedError(
            "Only administrators can inspect other members' permissions.",
            ErrorContext(account_id=str(current.account_id), principal_id=str(current.id)),
        )
    bindings = PrincipalRoleBindings(db)
    account_user = await bindings.get_account_user(current.account_id, account_user_id)
    principal = await bindings.load_principal(account_user)

    return PrincipalPermissionsResponse(
        principal_id=principal.id,
        effective_role=authorization.effective_role(principal),
        role_display_name=authorization.role_display_name(principal),
        administrator=authorization.is_administrator(principal),
        permissions=sorted(authorization.effective_permissions(principal)),
        conversation_permission_level=authorization.conversation_permission_level(principal),
        can_manage_conversations=ConversationAccess(
            **{
                scope.value: authorization.can_manage_conversations(principal, scope)
                for scope in ConversationScope
            },
        ),
        can_manage_contacts=authorization.can_manage_contacts(principal),
        can_manage_reports=authorization.can_manage_reports(principal),
        can_manage_knowledge_base=authorization.can_manage_knowledge_base(principal),
    )
