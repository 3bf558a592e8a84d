"""Role Lifecycle — verifies create/update/delete flows against the database.

Invariants:
    - Created roles read back with identical fields, permissions in catalog order
    - Names are unique per account, reusable across accounts
    - A uniqueness race lost at commit (create or rename) yields the same
      failure as the pre-check
    - Roles with bound principals are never deleted; their bindings stay intact

Design Decisions:
    - Coordinator driven directly with the test session: no HTTP layer involved
    - Ids captured before writes that may roll back (rollback expires ORM state)
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from custom_roles.core.deletion_guard import RoleInUse
from custom_roles.core.domain_types import RoleDraft
from custom_roles.core.errors import RoleNotFoundError
from custom_roles.core.validate_role import ValidationFailed, name_taken_failure
from custom_roles.models.account_user import AccountUser
from custom_roles.models.custom_role import CustomRole
from custom_roles.services.role_lifecycle import RoleLifecycleCoordinator


def _draft(**overrides) -> RoleDraft:
    fields = {
        "name": "Support Lead",
        "description": "Handles escalations",
        "permissions": ("report_manage", "conversation_unassigned_manage"),
    }
    fields.update(overrides)
    return RoleDraft(**fields)


@pytest.fixture
def coordinator(test_db):
    return RoleLifecycleCoordinator(test_db)


# ─── Create ──────────────────────────────────────────────────────

async def test_create_then_get_round_trip(coordinator, account):
    created = await coordinator.create_role(account.id, _draft(name="  Support Lead "))
    assert isinstance(created, CustomRole)

    fetched = await coordinator.get_role(account.id, created.id)
    assert fetched.name == "Support Lead"
    assert fetched.description == "Handles escalations"
    assert fetched.permissions == ["conversation_unassigned_manage", "report_manage"]
    assert fetched.created_at is not None


async def test_create_rejects_duplicate_name_in_account(coordinator, account):
    await coordinator.create_role(account.id, _draft())
    result = await coordinator.create_role(account.id, _draft())
    assert result == name_taken_failure()


async def test_same_name_allowed_in_other_account(coordinator, account, other_account):
    await coordinator.create_role(account.id, _draft())
    result = await coordinator.create_role(other_account.id, _draft())
    assert isinstance(result, CustomRole)
    assert result.account_id == other_account.id


async def test_create_reports_all_violations(coordinator, account, test_db):
    result = await coordinator.create_role(
        account.id, RoleDraft(name="x", description="", permissions=()),
    )
    assert isinstance(result, ValidationFailed)
    assert set(result.field_errors) == {"name", "description", "permissions"}
    count = await test_db.execute(select(func.count()).select_from(CustomRole))
    assert count.scalar_one() == 0


async def test_lost_name_race_reports_name_taken(coordinator, account, make_role, monkeypatch):
    """Pre-check sees no sibling; the unique constraint catches it at commit."""
    account_id = account.id
    await make_role(account, name="Support Lead")
    real_sibling_names = coordinator._sibling_names
    calls = []

    async def stale_sibling_names(target_account_id):
        calls.append(target_account_id)
        if len(calls) == 1:
            return {}
        return await real_sibling_names(target_account_id)

    monkeypatch.setattr(coordinator, "_sibling_names", stale_sibling_names)

    result = await coordinator.create_role(account_id, _draft())
    assert result == name_taken_failure()
    assert len(calls) == 2


async def test_unrelated_integrity_error_propagates(coordinator):
    with pytest.raises(IntegrityError):
        await coordinator.create_role(uuid4(), _draft())


# ─── Read ────────────────────────────────────────────────────────

async def test_list_roles_is_ordered_and_account_scoped(
    coordinator, account, other_account, make_role,
):
    await make_role(account, name="Zeta")
    await make_role(account, name="Alpha")
    await make_role(other_account, name="Beta")

    roles = await coordinator.list_roles(account.id)
    assert [r.name for r in roles] == ["Alpha", "Zeta"]


async def test_get_role_from_other_account_is_not_found(
    coordinator, account, other_account, make_role,
):
    foreign = await make_role(other_account)
    with pytest.raises(RoleNotFoundError) as exc_info:
        await coordinator.get_role(account.id, foreign.id)
    assert exc_info.value.code == "CUSTOM_ROLE_NOT_FOUND"


async def test_bound_counts_include_unbound_roles(
    coordinator, account, make_role, make_agent,
):
    bound = await make_role(account, name="Bound")
    unbound = await make_role(account, name="Unbound")
    await make_agent(account, bound)
    await make_agent(account, bound)

    counts = await coordinator.bound_counts([bound.id, unbound.id])
    assert counts == {bound.id: 2, unbound.id: 0}
    assert await coordinator.bound_counts([]) == {}


# ─── Update ──────────────────────────────────────────────────────

async def test_partial_update_keeps_omitted_fields(coordinator, account, make_role):
    role = await make_role(account, name="Support Lead")
    result = await coordinator.update_role(role, RoleDraft(description="Night shift"))

    assert result.name == "Support Lead"
    assert result.description == "Night shift"
    assert result.permissions == ["conversation_unassigned_manage", "report_manage"]


async def test_update_keeping_own_name_is_allowed(coordinator, account, make_role):
    role = await make_role(account, name="Support Lead")
    result = await coordinator.update_role(role, _draft(permissions=("contact_manage",)))
    assert isinstance(result, CustomRole)
    assert result.permissions == ["contact_manage"]


async def test_update_to_sibling_name_is_rejected(coordinator, account, make_role):
    await make_role(account, name="Billing")
    role = await make_role(account, name="Support Lead")

    result = await coordinator.update_role(role, RoleDraft(name="Billing"))
    assert result == name_taken_failure()
    assert role.name == "Support Lead"


async def test_update_lost_name_race_reports_name_taken(
    coordinator, account, make_role, monkeypatch, test_db,
):
    """Rename passes the stale pre-check; the unique constraint rejects it at commit."""
    await make_role(account, name="Billing")
    role = await make_role(account, name="Support Lead")
    role_id = role.id
    real_sibling_names = coordinator._sibling_names
    calls = []

    async def stale_sibling_names(target_account_id):
        calls.append(target_account_id)
        if len(calls) == 1:
            return {}
        return await real_sibling_names(target_account_id)

    monkeypatch.setattr(coordinator, "_sibling_names", stale_sibling_names)

    result = await coordinator.update_role(role, RoleDraft(name="Billing"))
    assert result == name_taken_failure()
    assert len(calls) == 2

    stored = await test_db.execute(
        select(CustomRole.name).where(CustomRole.id == role_id),
    )
    assert stored.scalar_one() == "Support Lead"


async def test_update_rejects_conflicting_conversation_permissions(
    coordinator, account, make_role,
):
    role = await make_role(account)
    result = await coordinator.update_role(
        role, RoleDraft(permissions=("conversation_manage", "conversation_unassigned_manage")),
    )
    assert isinstance(result, ValidationFailed)
    assert list(result.field_errors) == ["permissions"]


# ─── Delete ──────────────────────────────────────────────────────

async def test_delete_blocked_while_principals_bound(
    coordinator, account, make_role, make_agent, test_db,
):
    role = await make_role(account)
    agent_ids = [(await make_agent(account, role)).id for _ in range(3)]

    result = await coordinator.delete_role(role)
    assert result == RoleInUse(role_id=role.id, bound_count=3)

    remaining = await test_db.execute(
        select(func.count()).select_from(CustomRole).where(CustomRole.id == role.id),
    )
    assert remaining.scalar_one() == 1
    bound = await test_db.execute(
        select(AccountUser.id).where(AccountUser.custom_role_id == role.id),
    )
    assert sorted(bound.scalars().all()) == sorted(agent_ids)


async def test_delete_unbound_role(coordinator, account, make_role):
    role = await make_role(account)
    role_id = role.id

    assert await coordinator.delete_role(role) is None
    with pytest.raises(RoleNotFoundError):
        await coordinator.get_role(account.id, role_id)


async def test_is_deletable_tracks_bindings(coordinator, account, make_role, make_agent):
    role = await make_role(account)
    assert await coordinator.is_deletable(role)
    await make_agent(account, role)
    assert not await coordinator.is_deletable(role)
