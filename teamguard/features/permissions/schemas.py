"""
Pydantic schemas for capabilities, roles, groups and ability grants.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

# Codes are free-form; only the column width (capabilities.code) bounds them.
CODE_MAX_LENGTH = 100


# ============================================================================
# Capability Schemas
# ============================================================================

class CapabilityResponse(BaseModel):
    """Schema for capability response."""
    id: str
    code: str

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Role Schemas
# ============================================================================

class RoleCreate(BaseModel):
    """Schema for creating or replacing a role."""
    name: str = Field(..., min_length=1, max_length=50, description="Role name, unique within the team")
    capabilities: List[str] = Field(default_factory=list, description="Capability codes")

    @field_validator('capabilities')
    @classmethod
    def dedupe_capabilities(cls, v: List[str]) -> List[str]:
        """Check code lengths and drop duplicates, keeping first occurrence order."""
        for code in v:
            if not 0 < len(code) <= CODE_MAX_LENGTH:
                raise ValueError(f'Capability code must be 1 to {CODE_MAX_LENGTH} characters')
        return list(dict.fromkeys(v))


class RoleResponse(BaseModel):
    """Schema for role response."""
    id: str
    team_id: str
    name: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleWithCapabilities(RoleResponse):
    """Schema for role with capabilities."""
    capabilities: List[CapabilityResponse] = []


# ============================================================================
# Group Schemas
# ============================================================================

class GroupCreate(BaseModel):
    """Schema for creating a new group."""
    code: str = Field(..., min_length=1, max_length=100, description="Group code, unique within the team")
    name: str = Field(..., min_length=1, max_length=100, description="Group name")


class GroupResponse(BaseModel):
    """Schema for group response."""
    id: str
    team_id: str
    code: str
    name: str

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Ability Schemas
# ============================================================================

class AbilityGrant(BaseModel):
    """Schema for an ability grant request."""
    action: str = Field(..., min_length=1, max_length=CODE_MAX_LENGTH)
    entity_type: Optional[str] = Field(None, max_length=100)
    entity_id: Optional[str] = Field(None, max_length=64)
    user_id: Optional[str] = Field(None, description="Grantee (null grants to every member)")

    @model_validator(mode='after')
    def entity_pair(self) -> "AbilityGrant":
        if (self.entity_type is None) != (self.entity_id is None):
            raise ValueError('entity_type and entity_id must be given together')
        return self


class AbilityResponse(BaseModel):
    """Schema for ability grant response."""
    id: str
    team_id: str
    action: str
    user_id: Optional[str]
    entity_type: Optional[str]
    entity_id: Optional[str]

    model_config = ConfigDict(from_attributes=True)
