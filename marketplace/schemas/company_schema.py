from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from marketplace.models.enums import SubscriptionTier


class CompanyBase(BaseModel):
    name: str = Field(..., min_length=1, examples=["Acme Logistics"])
    email: Optional[EmailStr] = Field(default=None, examples=["it@acme.example"])
    subscription_tier: SubscriptionTier = Field(default=SubscriptionTier.BASIC, examples=["premium"])
    max_users: int = Field(default=10, ge=1, examples=[25])


class CompanyCreate(CompanyBase):
    pass


class CompanyOut(CompanyBase):
    id: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AssignmentCreate(BaseModel):
    container_id: UUID = Field(..., examples=["660e8400-e29b-41d4-a716-446655440001"])


class AssignmentOut(BaseModel):
    id: UUID
    company_id: UUID
    container_id: UUID
    assigned_at: Optional[datetime] = None
    assigned_by: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)
