from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from marketplace.models.enums import ContainerType, UrlStatus, Visibility

# columns that are NOT NULL: a patch may omit them but never null them out
_NON_NULLABLE_PATCH_FIELDS = ("title", "visibility", "tags", "is_marketplace")


def _clean_title(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    stripped = value.strip()
    if not stripped:
        raise ValueError("title must not be blank")
    return stripped


def _clean_tags(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return value
    return [tag.strip() for tag in value if tag and tag.strip()]


class ContainerBase(BaseModel):
    title: str = Field(..., min_length=1, examples=["Sales Bot"])
    description: Optional[str] = Field(default=None, examples=["Qualifies inbound leads"])
    type: ContainerType = Field(..., examples=["app"])
    industry: Optional[str] = Field(default=None, examples=["Retail"])
    department: Optional[str] = Field(default=None, examples=["Sales"])
    visibility: Visibility = Field(default=Visibility.PUBLIC, examples=["restricted"])
    tags: List[str] = Field(default_factory=list, examples=[["crm", "leads"]])
    url: Optional[str] = Field(default=None, examples=["https://apps.example.com/sales-bot"])
    is_marketplace: bool = Field(default=False, examples=[False])

    normalize_title = field_validator("title")(_clean_title)
    normalize_tags = field_validator("tags")(_clean_tags)


class ContainerCreate(ContainerBase):
    pass


class ContainerBulkCreate(BaseModel):
    containers: List[ContainerCreate] = Field(..., min_length=1)


class ContainerUpdate(BaseModel):
    """Partial update. ``views`` and the URL health fields are not writable here."""

    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[ContainerType] = None
    industry: Optional[str] = None
    department: Optional[str] = None
    visibility: Optional[Visibility] = None
    tags: Optional[List[str]] = None
    url: Optional[str] = None
    is_marketplace: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")

    normalize_title = field_validator("title")(_clean_title)
    normalize_tags = field_validator("tags")(_clean_tags)

    @model_validator(mode="after")
    def _reject_nulls(self):
        for field in _NON_NULLABLE_PATCH_FIELDS:
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class ContainerOut(ContainerBase):
    id: UUID
    url_status: UrlStatus = UrlStatus.UNKNOWN
    url_last_checked: Optional[datetime] = None
    url_check_error: Optional[str] = None
    views: int = 0
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ContainerFilters(BaseModel):
    type: Optional[ContainerType] = None
    search: Optional[str] = None
    industry: Optional[str] = None
    department: Optional[str] = None
    visibility: Optional[Visibility] = None
    is_marketplace: Optional[bool] = None


class ViewCountOut(BaseModel):
    container_id: UUID
    views: int


class FacetCount(BaseModel):
    name: str
    count: int
