"""Custom Roles Routes — CRUD for account custom roles plus the permission catalog.

Invariants:
    - Every route passes the feature gate, then the administrator gate
    - ValidationFailed -> RoleValidationError (422), RoleInUse -> RoleInUseError (422)
    - A role id from another account answers 404 exactly like a missing id
    - /permissions serves core catalog_payload() unchanged

Design Decisions:
    - /permissions declared before /{role_id} so the literal path wins
    - Request body enveloped as {"custom_role": {...}}
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from custom_roles.api.dependencies import require_administrator
from custom_roles.core.authorization import role_conversation_permission_level
from custom_roles.core.deletion_guard import is_deletable
from custom_roles.core.errors import ErrorContext, RoleInUseError, RoleValidationError
from custom_roles.core.permission_catalog import (
    catalog_payload,
    in_catalog_order,
    permissions_by_category,
)
from custom_roles.core.validate_role import ValidationFailed
from custom_roles.infrastructure.database import get_db
from custom_roles.models.account_user import AccountUser
from custom_roles.models.custom_role import CustomRole
from custom_roles.schemas.custom_role import (
    CustomRoleEnvelope,
    CustomRoleResponse,
    PermissionCatalogResponse,
)
from custom_roles.services.role_lifecycle import RoleLifecycleCoordinator

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/v1/accounts/{account_id}/custom_roles", tags=["custom_roles"],
)


def build_role_response(role: CustomRole, assigned_users_count: int) -> CustomRoleResponse:
    permissions = in_catalog_order(role.permissions or ())
    return CustomRoleResponse(
        id=role.id,
        name=role.name,
        description=role.description,
        permissions=permissions,
        permissions_by_category=permissions_by_category(permissions),
        conversation_permission_level=role_conversation_permission_level(permissions),
        assigned_users_count=assigned_users_count,
        deletable=is_deletable(assigned_users_count),
        created_at=role.created_at,
        updated_at=role.updated_at,
    )


def _raise_validation(failure: ValidationFailed, context: ErrorContext) -> None:
    raise RoleValidationError(
        failure.to_dict(), failure.full_messages(), context,
    )


@router.get("", response_model=list[CustomRoleResponse])
async def list_custom_roles(
    admin: AccountUser = Depends(require_administrator),
    db: AsyncSession = Depends(get_db),
):
    """List the account's custom roles ordered by name."""
    coordinator = RoleLifecycleCoordinator(db)
    roles = await coordinator.list_roles(admin.account_id)
    counts = await coordinator.bound_counts([r.id for r in roles])
    return [build_role_response(r, counts[r.id]) for r in roles]


@router.get("/permissions", response_model=PermissionCatalogResponse)
async def get_permission_catalog(
    admin: AccountUser = Depends(require_administrator),
):
    """Permission ids, descriptions and categories for the role editor."""
    return catalog_payload()


@router.get("/{role_id}", response_model=CustomRoleResponse)
async def get_custom_role(
    role_id: UUID,
    admin: AccountUser = Depends(require_administrator),
    db: AsyncSession = Depends(get_db),
):
    coordinator = RoleLifecycleCoordinator(db)
    role = await coordinator.get_role(admin.account_id, role_id)
    count = await coordinator.count_bound_principals(role.id)
    return build_role_response(role, count)


@router.post(
    "", response_model=CustomRoleResponse, status_code=status.HTTP_201_CREATED,
)
async def create_custom_role(
    body: CustomRoleEnvelope,
    admin: AccountUser = Depends(require_administrator),
    db: AsyncSession = Depends(get_db),
):
    # Captured up front: a lost name race rolls back and expires session objects
    account_id = admin.account_id
    coordinator = RoleLifecycleCoordinator(db)
    result = await coordinator.create_role(account_id, body.custom_role.to_draft())
    if isinstance(result, ValidationFailed):
        _raise_validation(result, ErrorContext(account_id=str(account_id)))
    return build_role_response(result, 0)


@router.api_route(
    "/{role_id}", methods=["PUT", "PATCH"], response_model=CustomRoleResponse,
)
async def update_custom_role(
    role_id: UUID,
    body: CustomRoleEnvelope,
    admin: AccountUser = Depends(require_administrator),
    db: AsyncSession = Depends(get_db),
):
    account_id = admin.account_id
    coordinator = RoleLifecycleCoordinator(db)
    role = await coordinator.get_role(account_id, role_id)
    result = await coordinator.update_role(role, body.custom_role.to_draft())
    if isinstance(result, ValidationFailed):
        _raise_validation(
            result,
            ErrorContext(account_id=str(account_id), role_id=str(role_id)),
        )
    count = await coordinator.count_bound_principals(result.id)
    return build_role_response(result, count)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_custom_role(
    role_id: UUID,
    admin: AccountUser = Depends(require_administrator),
    db: AsyncSession = Depends(get_db),
):
    coordinator = RoleLifecycleCoordinator(db)
    role = await coordinator.get_role(admin.account_id, role_id)
    in_use = await coordinator.delete_role(role)
    if in_use is not None:
        raise RoleInUseError(
            in_use.bound_count,
            ErrorContext(account_id=str(admin.account_id), role_id=str(role_id)),
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
