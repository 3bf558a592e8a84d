"""Custom Roles Routes — verifies the HTTP surface for role management.

Invariants:
    - Feature gate and administrator gate run before every handler
    - Validation failures answer 422 with per-field errors
    - Foreign-account roles answer 404 exactly like missing ones
    - Deleting a bound role answers 422 with the bound count
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from custom_roles.core.permission_catalog import catalog_payload
from custom_roles.models.account import Account
from custom_roles.models.account_user import AccountUser


def _url(account, suffix: str = "") -> str:
    return f"/api/v1/accounts/{account.id}/custom_roles{suffix}"


def _body(**overrides) -> dict:
    fields = {
        "name": "Support Lead",
        "description": "Handles escalations",
        "permissions": ["report_manage", "conversation_unassigned_manage"],
    }
    fields.update(overrides)
    return {"custom_role": fields}


# ─── Create ──────────────────────────────────────────────────────

async def test_create_returns_201_with_derived_fields(client, account, admin, as_user):
    res = await client.post(_url(account), json=_body(), headers=as_user(admin))
    assert res.status_code == 201

    data = res.json()
    assert data["name"] == "Support Lead"
    assert data["permissions"] == ["conversation_unassigned_manage", "report_manage"]
    assert data["permissions_by_category"] == {
        "conversation": ["conversation_unassigned_manage"],
        "management": ["report_manage"],
    }
    assert data["conversation_permission_level"] == "manage_unassigned"
    assert data["assigned_users_count"] == 0
    assert data["deletable"] is True


async def test_create_invalid_returns_422_with_every_field(client, account, admin, as_user):
    res = await client.post(
        _url(account),
        json={"custom_role": {"name": "x", "permissions": []}},
        headers=as_user(admin),
    )
    assert res.status_code == 422

    error = res.json()["error"]
    assert error["code"] == "VALIDATION_FAILED"
    assert set(error["details"]["field_errors"]) == {"name", "description", "permissions"}
    assert "Description can't be blank" in error["details"]["messages"]


async def test_create_conflicting_conversation_permissions(client, account, admin, as_user):
    res = await client.post(
        _url(account),
        json=_body(permissions=["conversation_manage", "conversation_participating_manage"]),
        headers=as_user(admin),
    )
    assert res.status_code == 422
    [message] = res.json()["error"]["details"]["field_errors"]["permissions"]
    assert "conversation category" in message


async def test_create_duplicate_name_returns_422(client, account, admin, as_user):
    await client.post(_url(account), json=_body(), headers=as_user(admin))
    res = await client.post(_url(account), json=_body(), headers=as_user(admin))
    assert res.status_code == 422
    assert res.json()["error"]["details"]["field_errors"] == {
        "name": ["must be unique within account"],
    }


async def test_malformed_body_returns_400(client, account, admin, as_user):
    res = await client.post(
        _url(account), json={"custom_role": "Support Lead"}, headers=as_user(admin),
    )
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


# ─── Gates ───────────────────────────────────────────────────────

async def test_agent_is_denied(client, account, agent, as_user):
    res = await client.get(_url(account), headers=as_user(agent))
    assert res.status_code == 403
    assert res.json()["error"]["code"] == "ACCESS_DENIED"


async def test_missing_header_is_denied(client, account, admin):
    res = await client.get(_url(account))
    assert res.status_code == 403
    assert res.json()["error"]["code"] == "ACCESS_DENIED"


async def test_member_of_other_account_is_denied(
    client, account, other_account, test_db, as_user,
):
    outsider = AccountUser(
        account_id=other_account.id, display_name="Eve", role="administrator",
    )
    test_db.add(outsider)
    await test_db.commit()

    res = await client.get(_url(account), headers=as_user(outsider))
    assert res.status_code == 403


async def test_feature_disabled_is_forbidden(client, test_db, as_user):
    account = Account(name="Legacy", features=[])
    test_db.add(account)
    await test_db.commit()
    admin = AccountUser(account_id=account.id, display_name="Ann", role="administrator")
    test_db.add(admin)
    await test_db.commit()

    res = await client.get(_url(account), headers=as_user(admin))
    assert res.status_code == 403
    assert res.json()["error"]["code"] == "FEATURE_NOT_ENABLED"


async def test_unknown_account_returns_404(client, admin, as_user):
    res = await client.get(
        f"/api/v1/accounts/{uuid4()}/custom_roles", headers=as_user(admin),
    )
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "ACCOUNT_NOT_FOUND"


# ─── Read ────────────────────────────────────────────────────────

async def test_permission_catalog(client, account, admin, as_user):
    res = await client.get(_url(account, "/permissions"), headers=as_user(admin))
    assert res.status_code == 200
    assert res.json() == catalog_payload()


async def test_list_ordered_with_counts(
    client, account, admin, make_role, make_agent, as_user,
):
    zeta = await make_role(account, name="Zeta")
    await make_role(account, name="Alpha")
    await make_agent(account, zeta)

    res = await client.get(_url(account), headers=as_user(admin))
    assert res.status_code == 200
    data = res.json()
    assert [r["name"] for r in data] == ["Alpha", "Zeta"]
    assert [r["assigned_users_count"] for r in data] == [0, 1]
    assert [r["deletable"] for r in data] == [True, False]


@pytest.mark.parametrize("method", ["get", "delete"])
async def test_foreign_role_indistinguishable_from_missing(
    client, account, other_account, admin, make_role, as_user, method,
):
    foreign = await make_role(other_account)
    call = getattr(client, method)

    foreign_res = await call(_url(account, f"/{foreign.id}"), headers=as_user(admin))
    missing_res = await call(_url(account, f"/{uuid4()}"), headers=as_user(admin))

    assert foreign_res.status_code == missing_res.status_code == 404
    assert foreign_res.json()["error"]["code"] == missing_res.json()["error"]["code"]


# ─── Update ──────────────────────────────────────────────────────

async def test_patch_updates_only_supplied_fields(client, account, admin, make_role, as_user):
    role = await make_role(account, name="Support Lead")
    res = await client.patch(
        _url(account, f"/{role.id}"),
        json={"custom_role": {"description": "Night shift"}},
        headers=as_user(admin),
    )
    assert res.status_code == 200
    data = res.json()
    assert data["name"] == "Support Lead"
    assert data["description"] == "Night shift"


async def test_put_rejects_name_of_sibling(client, account, admin, make_role, as_user):
    await make_role(account, name="Billing")
    role = await make_role(account, name="Support Lead")
    res = await client.put(
        _url(account, f"/{role.id}"), json=_body(name="Billing"), headers=as_user(admin),
    )
    assert res.status_code == 422
    assert res.json()["error"]["context"]["role_id"] == str(role.id)


# ─── Delete ──────────────────────────────────────────────────────

async def test_delete_unbound_role_returns_204(client, account, admin, make_role, as_user):
    role = await make_role(account)
    res = await client.delete(_url(account, f"/{role.id}"), headers=as_user(admin))
    assert res.status_code == 204

    res = await client.get(_url(account, f"/{role.id}"), headers=as_user(admin))
    assert res.status_code == 404


async def test_delete_bound_role_returns_422_with_count(
    client, account, admin, make_role, make_agent, as_user, test_session_factory,
):
    role = await make_role(account)
    agent_ids = [
        (await make_agent(account, role, display_name=f"Agent {n}")).id
        for n in range(3)
    ]

    res = await client.delete(_url(account, f"/{role.id}"), headers=as_user(admin))
    assert res.status_code == 422
    error = res.json()["error"]
    assert error["code"] == "ROLE_HAS_ASSIGNED_USERS"
    assert error["details"]["assigned_users_count"] == 3

    res = await client.get(_url(account, f"/{role.id}"), headers=as_user(admin))
    assert res.status_code == 200

    async with test_session_factory() as fresh:
        bound = await fresh.execute(
            select(AccountUser.id).where(AccountUser.custom_role_id == role.id),
        )
        assert sorted(bound.scalars().all()) == sorted(agent_ids)
