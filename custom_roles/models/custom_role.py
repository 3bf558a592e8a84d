"""CustomRole ORM — an account-scoped, named bundle of permissions.

Invariants:
    - (account_id, name) unique — enforced by constraint, pre-checked by the validator
    - permissions stored as a JSON list of catalog ids, in catalog order
    - parent_id is reserved: no hierarchy or inheritance behaviour reads it

Design Decisions:
    - JSON column for permissions: portable across PostgreSQL and SQLite test runs
    - account_users.custom_role_id uses ON DELETE SET NULL, never cascade
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from custom_roles.db.base import Base

UNIQUE_NAME_CONSTRAINT = "uq_custom_roles_account_id_name"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CustomRole(Base):
    """Custom role owned by an Account, referenced by AccountUsers."""
    __tablename__ = "custom_roles"
    __table_args__ = (
        UniqueConstraint("account_id", "name", name=UNIQUE_NAME_CONSTRAINT),
        CheckConstraint(
            "length(trim(name)) > 0", name="ck_custom_roles_name_not_empty",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    permissions: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    is_system: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True,
    )
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("custom_roles.id"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )
