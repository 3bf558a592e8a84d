"""ORM Models — SQLAlchemy declarative models for accounts, roles and principals.

Invariants:
    - All models inherit from Base (db/base.py)
    - Account is the tenant boundary; roles and account users are scoped by account_id

Design Decisions:
    - One file per entity for locality
    - All models imported here so metadata is complete before create_all/autogenerate
"""

from custom_roles.models.account import Account  # noqa: F401
from custom_roles.models.custom_role import CustomRole  # noqa: F401
from custom_roles.models.account_user import AccountUser  # noqa: F401
