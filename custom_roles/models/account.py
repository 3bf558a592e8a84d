"""Account ORM — the tenant boundary that owns custom roles and account users.

Invariants:
    - features lists enabled capability keys (e.g. "custom_roles")
    - Deleting an account cascades to its custom roles and account users (DB-level FK)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from custom_roles.db.base import Base


class Account(Base):
    """Tenant owning zero or more custom roles."""
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    features: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def feature_enabled(self, feature: str) -> bool:
        return feature in (self.features or [])
