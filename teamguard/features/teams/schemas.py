"""
Pydantic schemas for team-related requests and responses.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict

from teamguard.core import config
from teamguard.features.permissions.schemas import (
    AbilityResponse,
    GroupResponse,
    RoleWithCapabilities,
)
from teamguard.features.users.schemas import UserPublic


class TeamPolicy(BaseModel):
    """
    Explicit configuration for TeamService.

    Defaults come from the environment (see teamguard.core.config).
    """
    case_sensitive_emails: bool = Field(default_factory=lambda: config.CASE_SENSITIVE_EMAILS)

    model_config = ConfigDict(frozen=True)


class TeamCreate(BaseModel):
    """Schema for creating a new team."""
    name: str = Field(..., min_length=1, max_length=255)


class InvitationCreate(BaseModel):
    """Schema for inviting someone to a team."""
    email: EmailStr
    role: Optional[str] = Field(None, description="Role name assigned on acceptance")


class MembershipResponse(BaseModel):
    """Schema for membership responses."""
    user: UserPublic
    role_id: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TeamResponse(BaseModel):
    """Schema for a fully loaded team."""
    id: str
    name: str
    owner: UserPublic
    memberships: list[MembershipResponse] = Field(default_factory=list)
    roles: list[RoleWithCapabilities] = Field(default_factory=list)
    groups: list[GroupResponse] = Field(default_factory=list)
    abilities: list[AbilityResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
