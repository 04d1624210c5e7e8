from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from marketplace.models.enums import Role


class Permissions(BaseModel):
    can_access_apps: bool = True
    can_access_voices: bool = True
    can_access_workflows: bool = True


class PermissionUpdate(BaseModel):
    can_access_apps: Optional[bool] = None
    can_access_voices: Optional[bool] = None
    can_access_workflows: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


class PermissionOut(Permissions):
    user_id: UUID

    model_config = ConfigDict(from_attributes=True)


class UserBase(BaseModel):
    email: Optional[EmailStr] = Field(default=None, examples=["joana.silva@acme.example"])
    first_name: Optional[str] = Field(default=None, examples=["Joana"])
    last_name: Optional[str] = Field(default=None, examples=["Silva"])
    profile_image_url: Optional[str] = None
    role: Role = Field(default=Role.VIEWER, examples=["viewer"])
    company_id: Optional[UUID] = Field(default=None, examples=["550e8400-e29b-41d4-a716-446655440000"])


class UserCreate(UserBase):
    permissions: Permissions = Field(default_factory=Permissions)


class RoleUpdate(BaseModel):
    role: Role


class UserOut(UserBase):
    id: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserWithPermissionsOut(UserOut):
    permissions: Permissions
