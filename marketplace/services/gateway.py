"""Marketplace operations: every read and write goes through the entitlement checks here.

Each operation re-reads the actor's permission and company assignments in the
session that performs the gated write, so a decision is never older than the
mutation it guards. Failures are raised as ``marketplace.core.exceptions``
errors; the HTTP layer only translates them.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from marketplace.models.container import CompanyContainerAssignment, Container
from marketplace.models.identity import Company, User, UserPermission
from marketplace.routers import crud, validators
from marketplace.schemas.company_schema import CompanyCreate
from marketplace.schemas.container_schema import (
    ContainerCreate,
    ContainerFilters,
    ContainerUpdate,
    FacetCount,
)
from marketplace.schemas.stats_schema import ContainerStats, StatsScope
from marketplace.schemas.user_schema import (
    PermissionUpdate,
    Permissions,
    UserCreate,
    UserWithPermissionsOut,
)
from marketplace.services import entitlements, statistics
from shared import messaging

logger = logging.getLogger(__name__)

FACET_COLUMNS = ("industry", "department")


@dataclass
class ActorContext:
    actor: User
    permission: Optional[UserPermission]
    assignments: List[CompanyContainerAssignment] = field(default_factory=list)

    @property
    def capabilities(self) -> entitlements.Capabilities:
        return entitlements.resolve_capabilities(self.permission)


def load_actor_context(db: Session, actor: User) -> ActorContext:
    permission = crud.ensure_user_permission(db, actor.id)
    assignments = crud.list_company_assignments(db, actor.company_id)
    return ActorContext(actor=actor, permission=permission, assignments=assignments)


def _publish(publisher, event_type: str, payload: dict, actor: Optional[User] = None) -> None:
    if not publisher:
        return
    metadata = {"actor_id": str(actor.id)} if actor else None
    publisher.publish(event_type, payload, metadata=metadata)


def _can_view(db: Session, ctx: ActorContext, container: Container) -> bool:
    owner_company_id = None
    if not container.is_marketplace and container.created_by is not None:
        owner_company_id = crud.list_owner_companies(db, [container.created_by]).get(container.created_by)
    return entitlements.can_view(ctx.actor, ctx.permission, container, ctx.assignments, owner_company_id)


def _visible(db: Session, ctx: ActorContext, containers: List[Container]) -> List[Container]:
    owners = crud.list_owner_companies(
        db, [container.created_by for container in containers if not container.is_marketplace]
    )
    return entitlements.visible_containers(ctx.actor, ctx.permission, containers, ctx.assignments, owners)


def _denied(message: str, conceal: bool):
    return NotFoundError("Container not found") if conceal else ForbiddenError(message)


def _require_container(db: Session, container_id: UUID) -> Container:
    container = crud.get_container(db, container_id)
    if not container:
        raise NotFoundError("Container not found")
    return container


# Containers

def list_containers(db: Session, actor: User, filters: Optional[ContainerFilters] = None) -> List[Container]:
    ctx = load_actor_context(db, actor)
    return _visible(db, ctx, crud.list_containers(db, filters or ContainerFilters()))


def get_container(db: Session, actor: User, container_id: UUID, *, conceal_forbidden: bool = False) -> Container:
    container = _require_container(db, container_id)
    ctx = load_actor_context(db, actor)
    if not _can_view(db, ctx, container):
        raise _denied("You do not have access to this container", conceal_forbidden)
    return container


def _check_creatable(ctx: ActorContext, draft: ContainerCreate) -> None:
    if draft.is_marketplace and not entitlements.is_admin(ctx.actor):
        raise ForbiddenError("Only admins can publish marketplace containers")
    if not ctx.capabilities.allows(draft.type):
        raise ForbiddenError(f"You do not have access to {draft.type.value} containers")


def create_container(db: Session, actor: User, draft: ContainerCreate, publisher=None) -> Container:
    ctx = load_actor_context(db, actor)
    _check_creatable(ctx, draft)

    container = crud.create_container(db, draft, created_by=actor.id)
    logger.info("Container %s (%s) created by user_id=%s", container.id, container.type, actor.id)
    _publish(publisher, messaging.CONTAINER_CREATED, {"container_id": str(container.id)}, actor)
    return container


def create_containers_bulk(
    db: Session,
    actor: User,
    drafts: List[ContainerCreate],
    *,
    max_items: int,
    publisher=None,
) -> List[Container]:
    """All-or-nothing: every draft is checked before any row is written."""
    if not drafts:
        raise ValidationError("At least one container is required", field="containers")
    if len(drafts) > max_items:
        raise ValidationError(f"At most {max_items} containers can be imported at once", field="containers")

    ctx = load_actor_context(db, actor)
    for draft in drafts:
        _check_creatable(ctx, draft)

    containers = crud.create_containers_bulk(db, drafts, created_by=actor.id)
    logger.info("Bulk import of %s containers by user_id=%s", len(containers), actor.id)
    for container in containers:
        _publish(publisher, messaging.CONTAINER_CREATED, {"container_id": str(container.id)}, actor)
    return containers


def update_container(
    db: Session,
    actor: User,
    container_id: UUID,
    patch: ContainerUpdate,
    *,
    conceal_forbidden: bool = False,
) -> Container:
    container = _require_container(db, container_id)
    ctx = load_actor_context(db, actor)
    if not entitlements.can_mutate(actor, container):
        hidden = conceal_forbidden and not _can_view(db, ctx, container)
        raise _denied("You cannot modify this container", hidden)

    update_data = patch.model_dump(exclude_unset=True, mode="json")

    if "type" in update_data:
        if update_data["type"] != container.type:
            raise ValidationError("type cannot be changed after creation", field="type")
        update_data.pop("type")

    if (
        "is_marketplace" in update_data
        and update_data["is_marketplace"] != container.is_marketplace
        and not entitlements.is_admin(actor)
    ):
        raise ForbiddenError("Only admins can publish or unpublish marketplace containers")

    if not update_data:
        return container

    container = crud.update_container(db, container, update_data)
    logger.info("Container %s updated by user_id=%s fields=%s", container.id, actor.id, sorted(update_data))
    return container


def delete_container(
    db: Session,
    actor: User,
    container_id: UUID,
    *,
    conceal_forbidden: bool = False,
    publisher=None,
) -> None:
    container = _require_container(db, container_id)
    ctx = load_actor_context(db, actor)
    allowed = entitlements.can_mutate(actor, container)
    # marketplace templates are only removed administratively
    if container.is_marketplace and not entitlements.is_admin(actor):
        allowed = False
    if not allowed:
        hidden = conceal_forbidden and not _can_view(db, ctx, container)
        raise _denied("You cannot delete this container", hidden)

    crud.delete_container(db, container)
    logger.info("Container %s deleted by user_id=%s", container_id, actor.id)
    _publish(publisher, messaging.CONTAINER_DELETED, {"container_id": str(container_id)}, actor)


def record_view(db: Session, actor: User, container_id: UUID, *, conceal_forbidden: bool = False) -> int:
    """Count one view. Viewing rights suffice; mutation rights are not required."""
    container = _require_container(db, container_id)
    ctx = load_actor_context(db, actor)
    if not _can_view(db, ctx, container):
        raise _denied("You do not have access to this container", conceal_forbidden)

    views = crud.increment_container_views(db, container_id)
    if views is None:
        raise NotFoundError("Container not found")
    return views


# Company library and assignments

def list_company_containers(db: Session, actor: User, search: Optional[str] = None) -> List[Container]:
    if actor.company_id is None:
        raise ValidationError("User is not associated with a company", field="company_id")
    ctx = load_actor_context(db, actor)
    return _visible(db, ctx, crud.list_company_containers(db, actor.company_id, search))


def assign_container_to_company(
    db: Session,
    actor: User,
    company_id: UUID,
    container_id: UUID,
    publisher=None,
) -> CompanyContainerAssignment:
    if not entitlements.can_manage_company(actor, company_id):
        raise ForbiddenError("Admin access to this company is required")
    if not crud.get_company(db, company_id):
        raise NotFoundError("Company not found")
    container = _require_container(db, container_id)

    if not entitlements.is_platform_admin(actor):
        ctx = load_actor_context(db, actor)
        if not _can_view(db, ctx, container):
            raise ForbiddenError("You do not have access to this container")

    existing = crud.get_assignment(db, company_id, container_id)
    if existing:
        return existing

    assignment = crud.assign_container(db, company_id, container_id, assigned_by=actor.id)
    logger.info("Container %s assigned to company_id=%s by user_id=%s", container_id, company_id, actor.id)
    _publish(
        publisher,
        messaging.ASSIGNMENT_CREATED,
        {"company_id": str(company_id), "container_id": str(container_id)},
        actor,
    )
    return assignment


def revoke_container_from_company(
    db: Session,
    actor: User,
    company_id: UUID,
    container_id: UUID,
    publisher=None,
) -> None:
    """Safe to retry: revoking a missing assignment succeeds without effect."""
    if not entitlements.can_manage_company(actor, company_id):
        raise ForbiddenError("Admin access to this company is required")

    if crud.revoke_assignment(db, company_id, container_id):
        logger.info("Container %s revoked from company_id=%s by user_id=%s", container_id, company_id, actor.id)
        _publish(
            publisher,
            messaging.ASSIGNMENT_REVOKED,
            {"company_id": str(company_id), "container_id": str(container_id)},
            actor,
        )


# Statistics and facets

def get_stats(db: Session, actor: User, scope: StatsScope = StatsScope.VISIBLE) -> ContainerStats:
    if scope == StatsScope.GLOBAL:
        if not entitlements.is_platform_admin(actor):
            raise ForbiddenError("Global statistics require platform admin access")
        return statistics.compute_stats(crud.list_containers(db), crud.list_users(db))

    members = crud.list_users(db, actor.company_id) if actor.company_id else [actor]

    if scope == StatsScope.COMPANY:
        if actor.company_id is None:
            raise ValidationError("User is not associated with a company", field="company_id")
        ctx = load_actor_context(db, actor)
        library = _visible(db, ctx, crud.list_company_library(db, actor.company_id))
        return statistics.compute_stats(library, members)

    return statistics.compute_stats(list_containers(db, actor), members)


def list_facets(
    db: Session,
    actor: User,
    column: str,
    container_type=None,
) -> List[FacetCount]:
    """Distinct values of ``column`` with counts over viewable marketplace containers."""
    if column not in FACET_COLUMNS:
        raise ValidationError(f"Unknown facet '{column}'", field="facet")
    visible = list_containers(db, actor, ContainerFilters(type=container_type, is_marketplace=True))
    counts = Counter(getattr(container, column) for container in visible if getattr(container, column))
    return [FacetCount(name=name, count=count) for name, count in sorted(counts.items())]


# Companies

def create_company(db: Session, actor: User, payload: CompanyCreate) -> Company:
    if not entitlements.is_platform_admin(actor):
        raise ForbiddenError("Platform admin access required")
    validators.ensure_unique_company_email(db, payload.email)
    try:
        company = crud.create_company(db, payload)
    except IntegrityError:
        raise ConflictError("A company with this email already exists")
    logger.info("Company %s created by user_id=%s", company.id, actor.id)
    return company


def get_company(db: Session, actor: User, company_id: UUID) -> Company:
    company = crud.get_company(db, company_id)
    if not company:
        raise NotFoundError("Company not found")
    if not entitlements.is_platform_admin(actor) and actor.company_id != company_id:
        raise ForbiddenError("You do not have access to this company")
    return company


def delete_company(db: Session, actor: User, company_id: UUID, publisher=None) -> None:
    """Blocked while the company still has users; its assignments are deleted with it."""
    if not entitlements.is_platform_admin(actor):
        raise ForbiddenError("Platform admin access required")
    company = crud.get_company(db, company_id)
    if not company:
        raise NotFoundError("Company not found")

    members = crud.count_company_users(db, company_id)
    if members:
        raise ConflictError(f"Company still has {members} users; move or remove them first")

    try:
        crud.delete_company(db, company)
    except IntegrityError:
        # a user joined between the count and the delete
        raise ConflictError("Company still has users; move or remove them first")
    logger.info("Company %s deleted by user_id=%s", company_id, actor.id)
    _publish(publisher, messaging.COMPANY_DELETED, {"company_id": str(company_id)}, actor)


# Users and permissions

def describe_user(user: User, permission: Optional[UserPermission]) -> UserWithPermissionsOut:
    capabilities = entitlements.resolve_capabilities(permission)
    return UserWithPermissionsOut.model_validate(
        {
            "id": user.id,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "profile_image_url": user.profile_image_url,
            "role": user.role,
            "company_id": user.company_id,
            "created_at": user.created_at,
            "updated_at": user.updated_at,
            "permissions": Permissions(
                can_access_apps=capabilities.apps,
                can_access_voices=capabilities.voices,
                can_access_workflows=capabilities.workflows,
            ),
        }
    )


def get_me(db: Session, actor: User) -> UserWithPermissionsOut:
    permission = crud.ensure_user_permission(db, actor.id)
    return describe_user(actor, permission)


def create_user(db: Session, actor: User, payload: UserCreate) -> User:
    if not entitlements.can_manage_company(actor, payload.company_id):
        raise ForbiddenError("Admin access to this company is required")

    if payload.company_id:
        company = crud.get_company(db, payload.company_id)
        if not company:
            raise NotFoundError("Company not found")
        validators.ensure_company_has_capacity(db, company)

    validators.ensure_unique_user_email(db, payload.email)
    try:
        user = crud.create_user(db, payload)
    except IntegrityError:
        raise ConflictError("A user with this email already exists")
    logger.info("User %s created by user_id=%s", user.id, actor.id)
    return user


def list_users(db: Session, actor: User) -> List[UserWithPermissionsOut]:
    if not entitlements.is_admin(actor):
        raise ForbiddenError("Admin access required")
    company_id = None if entitlements.is_platform_admin(actor) else actor.company_id
    users = crud.list_users(db, company_id)
    permissions = crud.list_user_permissions(db, [user.id for user in users])
    return [describe_user(user, permissions.get(user.id)) for user in users]


def _require_manageable_user(db: Session, actor: User, user_id: UUID) -> User:
    target = crud.get_user(db, user_id)
    if not target:
        raise NotFoundError("User not found")
    if not entitlements.can_manage_user(actor, target):
        raise ForbiddenError("You cannot manage this user")
    return target


def set_user_permission(
    db: Session,
    actor: User,
    user_id: UUID,
    patch: PermissionUpdate,
    publisher=None,
) -> UserPermission:
    target = _require_manageable_user(db, actor, user_id)
    permission = crud.ensure_user_permission(db, target.id)

    update_data = {key: value for key, value in patch.model_dump(exclude_unset=True).items() if value is not None}
    if update_data:
        permission = crud.update_user_permission(db, permission, update_data)
        logger.info("Permissions of user_id=%s changed by user_id=%s: %s", user_id, actor.id, update_data)
        _publish(publisher, messaging.PERMISSION_UPDATED, {"user_id": str(user_id), **update_data}, actor)
    return permission


def set_user_role(db: Session, actor: User, user_id: UUID, role) -> User:
    target = _require_manageable_user(db, actor, user_id)
    target = crud.update_user_role(db, target, role.value)
    logger.info("Role of user_id=%s set to %s by user_id=%s", user_id, target.role, actor.id)
    return target
