import logging
from typing import Dict, Iterable, List, Optional
from uuid import UUID
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from marketplace.models.container import CompanyContainerAssignment, Container
from marketplace.models.identity import Company, User, UserPermission
from marketplace.schemas.company_schema import CompanyCreate
from marketplace.schemas.container_schema import ContainerCreate, ContainerFilters
from marketplace.schemas.user_schema import Permissions, UserCreate

logger = logging.getLogger(__name__)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise


# Companies

def create_company(db: Session, payload: CompanyCreate) -> Company:
    company = Company(
        name=payload.name,
        email=payload.email,
        subscription_tier=payload.subscription_tier.value,
        max_users=payload.max_users,
    )
    db.add(company)
    _commit(db)
    db.refresh(company)
    return company


def get_company(db: Session, company_id: UUID) -> Optional[Company]:
    return db.get(Company, company_id)


def count_company_users(db: Session, company_id: UUID) -> int:
    return db.query(User).filter(User.company_id == company_id).count()


def delete_company(db: Session, company: Company) -> None:
    # assignments go with the company through the relationship cascade
    db.delete(company)
    _commit(db)


# Users and permissions

def create_user(db: Session, payload: UserCreate) -> User:
    user = User(
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        profile_image_url=payload.profile_image_url,
        role=payload.role.value,
        company_id=payload.company_id,
    )
    user.permission = UserPermission(**payload.permissions.model_dump())
    db.add(user)
    _commit(db)
    db.refresh(user)
    return user


def get_user(db: Session, user_id: UUID) -> Optional[User]:
    return db.get(User, user_id)


def list_users(db: Session, company_id: Optional[UUID] = None) -> List[User]:
    query = db.query(User)
    if company_id:
        query = query.filter(User.company_id == company_id)
    return query.order_by(User.created_at.desc(), User.email.asc()).all()


def update_user_role(db: Session, user: User, role: str) -> User:
    user.role = role
    db.commit()
    db.refresh(user)
    return user


def get_user_permission(db: Session, user_id: UUID) -> Optional[UserPermission]:
    return db.query(UserPermission).filter(UserPermission.user_id == user_id).first()


def list_user_permissions(db: Session, user_ids: Iterable[UUID]) -> Dict[UUID, UserPermission]:
    ids = list(user_ids)
    if not ids:
        return {}
    rows = db.query(UserPermission).filter(UserPermission.user_id.in_(ids)).all()
    return {row.user_id: row for row in rows}


def ensure_user_permission(db: Session, user_id: UUID) -> UserPermission:
    """Return the user's permission row, creating the allow-all default if absent."""
    permission = get_user_permission(db, user_id)
    if permission:
        return permission

    permission = UserPermission(user_id=user_id, **Permissions().model_dump())
    db.add(permission)
    try:
        db.commit()
    except IntegrityError:
        # another request created it first
        db.rollback()
        return get_user_permission(db, user_id)
    db.refresh(permission)
    logger.info("Created default permissions for user_id=%s", user_id)
    return permission


def update_user_permission(db: Session, permission: UserPermission, update_data: dict) -> UserPermission:
    for field, value in update_data.items():
        setattr(permission, field, value)
    db.commit()
    db.refresh(permission)
    return permission


# Containers

def _new_container(payload: ContainerCreate, created_by: Optional[UUID]) -> Container:
    return Container(
        title=payload.title,
        description=payload.description,
        type=payload.type.value,
        industry=payload.industry,
        department=payload.department,
        visibility=payload.visibility.value,
        tags=list(payload.tags),
        url=payload.url,
        is_marketplace=payload.is_marketplace,
        views=0,
        created_by=created_by,
    )


def create_container(db: Session, payload: ContainerCreate, created_by: Optional[UUID]) -> Container:
    container = _new_container(payload, created_by)
    db.add(container)
    _commit(db)
    db.refresh(container)
    return container


def create_containers_bulk(
    db: Session,
    payloads: List[ContainerCreate],
    created_by: Optional[UUID],
) -> List[Container]:
    containers = [_new_container(payload, created_by) for payload in payloads]
    db.add_all(containers)
    _commit(db)
    for container in containers:
        db.refresh(container)
    return containers


def list_containers(db: Session, filters: Optional[ContainerFilters] = None) -> List[Container]:
    query = db.query(Container)
    if filters:
        if filters.type:
            query = query.filter(Container.type == filters.type.value)
        if filters.industry:
            query = query.filter(Container.industry == filters.industry)
        if filters.department:
            query = query.filter(Container.department == filters.department)
        if filters.visibility:
            query = query.filter(Container.visibility == filters.visibility.value)
        if filters.is_marketplace is not None:
            query = query.filter(Container.is_marketplace == filters.is_marketplace)
        if filters.search:
            search = filters.search
            query = query.filter(
                or_(
                    Container.title.icontains(search, autoescape=True),
                    Container.description.icontains(search, autoescape=True),
                )
            )
    return query.order_by(Container.created_at.desc(), Container.title.asc()).all()


def get_container(db: Session, container_id: UUID) -> Optional[Container]:
    return db.get(Container, container_id)


def update_container(db: Session, container: Container, update_data: dict) -> Container:
    for field, value in update_data.items():
        setattr(container, field, value)
    _commit(db)
    db.refresh(container)
    return container


def delete_container(db: Session, container: Container) -> None:
    # assignments go with the container through the relationship cascade
    db.delete(container)
    _commit(db)


def increment_container_views(db: Session, container_id: UUID) -> Optional[int]:
    """Add one view as a relative update and return the new count.

    The row stays locked by the UPDATE until commit, so the count read back
    is the one this call produced.
    """
    result = db.execute(
        update(Container)
        .where(Container.id == container_id)
        .values(views=Container.views + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        return None
    views = db.execute(select(Container.views).where(Container.id == container_id)).scalar_one()
    db.commit()
    return views


def list_owner_companies(db: Session, user_ids: Iterable[UUID]) -> Dict[UUID, Optional[UUID]]:
    """Map creator user ids to their company ids."""
    ids = {user_id for user_id in user_ids if user_id is not None}
    if not ids:
        return {}
    rows = db.query(User.id, User.company_id).filter(User.id.in_(ids)).all()
    return {row.id: row.company_id for row in rows}


# Assignments

def get_assignment(db: Session, company_id: UUID, container_id: UUID) -> Optional[CompanyContainerAssignment]:
    return (
        db.query(CompanyContainerAssignment)
        .filter(
            CompanyContainerAssignment.company_id == company_id,
            CompanyContainerAssignment.container_id == container_id,
        )
        .first()
    )


def list_company_assignments(db: Session, company_id: Optional[UUID]) -> List[CompanyContainerAssignment]:
    if company_id is None:
        return []
    return (
        db.query(CompanyContainerAssignment)
        .filter(CompanyContainerAssignment.company_id == company_id)
        .all()
    )


def assign_container(
    db: Session,
    company_id: UUID,
    container_id: UUID,
    assigned_by: Optional[UUID],
) -> CompanyContainerAssignment:
    """Idempotent: an existing assignment for the pair is returned unchanged."""
    existing = get_assignment(db, company_id, container_id)
    if existing:
        return existing

    assignment = CompanyContainerAssignment(
        company_id=company_id,
        container_id=container_id,
        assigned_by=assigned_by,
    )
    db.add(assignment)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent assign won the unique constraint
        db.rollback()
        existing = get_assignment(db, company_id, container_id)
        if existing is None:
            raise
        return existing
    db.refresh(assignment)
    return assignment


def revoke_assignment(db: Session, company_id: UUID, container_id: UUID) -> bool:
    assignment = get_assignment(db, company_id, container_id)
    if not assignment:
        return False
    db.delete(assignment)
    db.commit()
    return True


def list_company_containers(db: Session, company_id: UUID, search: Optional[str] = None) -> List[Container]:
    query = (
        db.query(Container)
        .join(CompanyContainerAssignment, CompanyContainerAssignment.container_id == Container.id)
        .filter(CompanyContainerAssignment.company_id == company_id)
    )
    if search:
        query = query.filter(
            or_(
                Container.title.icontains(search, autoescape=True),
                Container.description.icontains(search, autoescape=True),
                Container.industry.icontains(search, autoescape=True),
                Container.department.icontains(search, autoescape=True),
            )
        )
    return query.order_by(Container.created_at.desc(), Container.title.asc()).all()


def list_company_library(db: Session, company_id: UUID) -> List[Container]:
    """Containers assigned to ``company_id`` plus tenant containers its members created.

    One SELECT, so the result is a single consistent snapshot.
    """
    assigned = select(CompanyContainerAssignment.container_id).where(
        CompanyContainerAssignment.company_id == company_id
    )
    members = select(User.id).where(User.company_id == company_id)
    return (
        db.query(Container)
        .filter(
            or_(
                Container.id.in_(assigned),
                Container.is_marketplace.is_(False) & Container.created_by.in_(members),
            )
        )
        .order_by(Container.created_at.desc(), Container.title.asc())
        .all()
    )
