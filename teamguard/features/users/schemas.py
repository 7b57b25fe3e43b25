"""
Pydantic schemas for user-related responses.
"""
from pydantic import BaseModel, EmailStr, ConfigDict


class UserPublic(BaseModel):
    """Public user information embedded in team responses."""
    id: str
    email: EmailStr
    name: str

    model_config = ConfigDict(from_attributes=True)
