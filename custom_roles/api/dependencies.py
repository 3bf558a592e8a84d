"""Request Gates — account lookup, feature gate, caller identity, access gate.

Invariants:
    - Order per request: account exists -> custom_roles feature enabled -> caller
      is a member of the account -> (optionally) caller is administrator
    - The caller is identified by a header set by the upstream auth layer; this
      service never authenticates

Design Decisions:
    - FastAPI dependency chain: every route declares the strongest gate it needs,
      the shared get_db session is reused across the chain
"""

import logging
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from custom_roles.config import get_settings
from custom_roles.core.domain_types import SystemRole
from custom_roles.core.errors import (
    AccessDeniedError,
    ErrorContext,
    FeatureDisabledError,
    ResourceNotFoundError,
)
from custom_roles.infrastructure.database import get_db
from custom_roles.models.account import Account
from custom_roles.models.account_user import AccountUser

logger = logging.getLogger(__name__)


async def get_account(
    account_id: UUID, db: AsyncSession = Depends(get_db),
) -> Account:
    account = await db.get(Account, account_id)
    if account is None:
        raise ResourceNotFoundError(
            "Account", str(account_id), "ACCOUNT_NOT_FOUND",
        )
    return account


async def require_custom_roles_feature(
    account: Account = Depends(get_account),
) -> Account:
    """Capability gate: blocks the whole core when the feature is off."""
    feature = get_settings().custom_roles_feature_key
    if not account.feature_enabled(feature):
        raise FeatureDisabledError(
            feature, ErrorContext(account_id=str(account.id)),
        )
    return account


async def get_current_account_user(
    request: Request,
    account: Account = Depends(require_custom_roles_feature),
    db: AsyncSession = Depends(get_db),
) -> AccountUser:
    """Caller's membership in the path account, from the trusted header."""
    header = get_settings().principal_header
    raw = request.headers.get(header)
    context = ErrorContext(account_id=str(account.id))
    try:
        account_user_id = UUID(raw) if raw else None
    except ValueError:
        account_user_id = None
    if account_user_id is None:
        raise AccessDeniedError(f"Missing or malformed {header} header.", context)

    result = await db.execute(
        select(AccountUser).where(
            AccountUser.id == account_user_id,
            AccountUser.account_id == account.id,
        ),
    )
    account_user = result.scalar_one_or_none()
    if account_user is None:
        raise AccessDeniedError("Caller is not a member of this account.", context)
    return account_user


async def require_administrator(
    current: AccountUser = Depends(get_current_account_user),
) -> AccountUser:
    """Access gate: custom-role management is administrator-only."""
    if current.system_role is not SystemRole.ADMINISTRATOR:
        logger.info(
            "Non-administrator denied",
            extra={"account_id": current.account_id, "principal_id": current.id},
        )
        raise AccessDeniedError(
            context=ErrorContext(
                account_id=str(current.account_id), principal_id=str(current.id),
            ),
        )
    return current
