import uuid
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.core.database import Base
from marketplace.models.enums import UrlStatus, Visibility


class Container(Base):
    __tablename__ = "containers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String, nullable=False, index=True)
    industry = Column(String, nullable=True)
    department = Column(String, nullable=True)
    visibility = Column(String, nullable=False, default=Visibility.PUBLIC.value)
    tags = Column(JSONB().with_variant(JSON, "sqlite"), nullable=False, default=list)
    url = Column(Text, nullable=True)
    url_status = Column(String, nullable=False, default=UrlStatus.UNKNOWN.value)
    url_last_checked = Column(DateTime(timezone=True), nullable=True)
    url_check_error = Column(Text, nullable=True)
    is_marketplace = Column(Boolean, nullable=False, default=False)
    views = Column(Integer, nullable=False, default=0)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    creator = relationship("User")
    company_assignments = relationship(
        "CompanyContainerAssignment",
        back_populates="container",
        cascade="all, delete-orphan",
    )


class CompanyContainerAssignment(Base):
    __tablename__ = "company_container_assignments"
    __table_args__ = (
        UniqueConstraint("company_id", "container_id", name="uq_assignments_company_container"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = Column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    container_id = Column(
        UUID(as_uuid=True),
        ForeignKey("containers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())
    assigned_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    company = relationship("Company", back_populates="container_assignments")
    container = relationship("Container", back_populates="company_assignments")
