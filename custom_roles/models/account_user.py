"""AccountUser ORM — a principal's membership in an account and its role binding.

Invariants:
    - role is 'administrator' or 'agent'
    - custom_role_id, when set, references a role of the same account
    - An administrator never has a custom_role_id (cleared on promotion)

Design Decisions:
    - custom_role_id ON DELETE SET NULL: removing a role never removes a principal
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from custom_roles.core.domain_types import SystemRole
from custom_roles.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountUser(Base):
    """Principal: a user's membership in one account."""
    __tablename__ = "account_users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SystemRole.AGENT.value,
    )
    custom_role_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("custom_roles.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    @property
    def system_role(self) -> SystemRole:
        return SystemRole(self.role)
