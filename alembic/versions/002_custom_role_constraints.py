"""Integrity constraints for custom roles.

Revision ID: 002_custom_role_constraints
Revises: 001_custom_roles
Create Date: 2026-10-19

Roles cascade with their account; deleting a role nullifies account_users
bindings instead of deleting members. Names are unique per account and never
blank after trimming.
"""
from typing import Sequence, Union

from alembic import op

revision: str = "002_custom_role_constraints"
down_revision: Union[str, None] = "001_custom_roles"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# (table, constraint_name, column, referenced, ondelete)
_FKS = [
    ("custom_roles", "custom_roles_account_id_fkey", "account_id", "accounts.id", "CASCADE"),
    ("account_users", "account_users_account_id_fkey", "account_id", "accounts.id", "CASCADE"),
    ("account_users", "account_users_custom_role_id_fkey", "custom_role_id", "custom_roles.id", "SET NULL"),
]


def upgrade() -> None:
    for table, constraint, column, ref, ondelete in _FKS:
        op.drop_constraint(constraint, table, type_="foreignkey")
        op.create_foreign_key(
            constraint, table, ref.split(".")[0],
            [column], [ref.split(".")[1]],
            ondelete=ondelete,
        )
    op.create_unique_constraint(
        "uq_custom_roles_account_id_name", "custom_roles", ["account_id", "name"],
    )
    op.create_check_constraint(
        "ck_custom_roles_name_not_empty", "custom_roles", "length(trim(name)) > 0",
    )


def downgrade() -> None:
    op.drop_constraint("ck_custom_roles_name_not_empty", "custom_roles", type_="check")
    op.drop_constraint("uq_custom_roles_account_id_name", "custom_roles", type_="unique")
    for table, constraint, column, ref, _ondelete in _FKS:
        op.drop_constraint(constraint, table, type_="foreignkey")
        op.create_foreign_key(
            constraint, table, ref.split(".")[0],
            [column], [ref.split(".")[1]],
        )
