"""Custom Role Schemas — request envelopes and response shapes for role endpoints.

Invariants:
    - Request fields are all optional: absence is reported by the role validator
      together with every other violation, not as a transport error
    - CustomRoleEnvelope mirrors the {"custom_role": {...}} request body
    - Responses derive permissions_by_category and conversation level from core/

Design Decisions:
    - Loose transport types here, semantic validation in core/validate_role
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from custom_roles.core.domain_types import (
    ConversationPermissionLevel,
    RoleDraft,
    SystemRole,
)


class CustomRoleFields(BaseModel):
    """Role fields as submitted by the dashboard."""
    name: str | None = None
    description: str | None = None
    permissions: list[str] | None = None

    def to_draft(self) -> RoleDraft:
        return RoleDraft(
            name=self.name,
            description=self.description,
            permissions=(
                tuple(self.permissions) if self.permissions is not None else None
            ),
        )


class CustomRoleEnvelope(BaseModel):
    """Request body: {"custom_role": {...}}."""
    custom_role: CustomRoleFields


class CustomRoleResponse(BaseModel):
    """Public role representation."""
    id: UUID
    name: str
    description: str
    permissions: list[str]
    permissions_by_category: dict[str, list[str]]
    conversation_permission_level: ConversationPermissionLevel
    assigned_users_count: int
    deletable: bool
    created_at: datetime
    updated_at: datetime


class PermissionCatalogResponse(BaseModel):
    """Presentation mirror of the permission catalog."""
    permissions: list[str]
    descriptions: dict[str, str]
    categories: dict[str, list[str]]
    exclusive_categories: list[str]


class AccountUserUpdate(BaseModel):
    """Role binding change for one account user."""
    role: Literal["administrator", "agent"] | None = None
    custom_role_id: UUID | None = None

    @property
    def system_role(self) -> SystemRole | None:
        return SystemRole(self.role) if self.role else None

    @property
    def assigns_custom_role(self) -> bool:
        """custom_role_id supplied explicitly (null means unbind)."""
        return "custom_role_id" in self.model_fields_set


class AccountUserResponse(BaseModel):
    id: UUID
    account_id: UUID
    display_name: str
    role: SystemRole
    custom_role_id: UUID | None = None


class ConversationAccess(BaseModel):
    all: bool
    unassigned: bool
    participating: bool


class PrincipalPermissionsResponse(BaseModel):
    """Authorization decisions for one principal."""
    principal_id: UUID
    effective_role: str
    role_display_name: str
    administrator: bool
    permissions: list[str] = Field(description="Effective permission set, sorted")
    conversation_permission_level: ConversationPermissionLevel
    can_manage_conversations: ConversationAccess
    can_manage_contacts: bool
    can_manage_reports: bool
    can_manage_knowledge_base: bool
