"""Entitlement decisions: who may see and who may change a container.

Everything here is pure. Callers fetch the actor, its permission row, its
company's assignments and the container owners' companies beforehand; these
functions only decide. Missing data never grants access and never raises.

``can_view`` applies three gates in order and stops at the first failure:

1. capability: the actor's permission must allow the container type
   (no permission row means every type is allowed);
2. visibility: ``public`` passes, ``restricted`` needs a company affiliation,
   ``admin_only`` needs the admin role;
3. ownership: tenant-private containers (``is_marketplace`` false) are only
   visible to their creator, to members of the creator's company, and to
   companies holding an assignment for them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional
from uuid import UUID

from marketplace.models.enums import ContainerType, Role, Visibility


@dataclass(frozen=True)
class Capabilities:
    apps: bool = True
    voices: bool = True
    workflows: bool = True

    def allows(self, container_type) -> bool:
        if container_type == ContainerType.APP:
            return self.apps
        if container_type == ContainerType.VOICE:
            return self.voices
        if container_type == ContainerType.WORKFLOW:
            return self.workflows
        return False


ALL_CAPABILITIES = Capabilities()


def _flag(value) -> bool:
    # a NULL column falls back to the column default
    return True if value is None else bool(value)


def resolve_capabilities(permission) -> Capabilities:
    """The single place where an absent permission row becomes allow-all."""
    if permission is None:
        return ALL_CAPABILITIES
    return Capabilities(
        apps=_flag(permission.can_access_apps),
        voices=_flag(permission.can_access_voices),
        workflows=_flag(permission.can_access_workflows),
    )


def is_admin(actor) -> bool:
    return actor is not None and actor.role == Role.ADMIN


def is_platform_admin(actor) -> bool:
    """An admin that belongs to no company administers the whole platform."""
    return is_admin(actor) and actor.company_id is None


def can_manage_user(actor, target) -> bool:
    """Platform admins manage everyone; company admins manage their own company."""
    if is_platform_admin(actor):
        return True
    return is_admin(actor) and target.company_id is not None and target.company_id == actor.company_id


def can_manage_company(actor, company_id: Optional[UUID]) -> bool:
    if is_platform_admin(actor):
        return True
    return is_admin(actor) and company_id is not None and company_id == actor.company_id


def passes_capability_gate(permission, container) -> bool:
    return resolve_capabilities(permission).allows(container.type)


def passes_visibility_gate(actor, container) -> bool:
    if container.visibility == Visibility.PUBLIC:
        return True
    if container.visibility == Visibility.RESTRICTED:
        return actor.company_id is not None
    if container.visibility == Visibility.ADMIN_ONLY:
        return is_admin(actor)
    return False


def has_assignment(company_id: Optional[UUID], container_id: UUID, assignments: Iterable) -> bool:
    if company_id is None:
        return False
    return any(
        assignment.company_id == company_id and assignment.container_id == container_id
        for assignment in assignments
    )


def passes_ownership_gate(actor, container, assignments: Iterable, owner_company_id: Optional[UUID] = None) -> bool:
    if container.is_marketplace:
        return True
    if container.created_by is not None and container.created_by == actor.id:
        return True
    if actor.company_id is not None and owner_company_id is not None and actor.company_id == owner_company_id:
        return True
    return has_assignment(actor.company_id, container.id, assignments)


def can_view(
    actor,
    permission,
    container,
    assignments: Iterable = (),
    owner_company_id: Optional[UUID] = None,
) -> bool:
    if actor is None or container is None:
        return False
    if not passes_capability_gate(permission, container):
        return False
    if not passes_visibility_gate(actor, container):
        return False
    return passes_ownership_gate(actor, container, assignments, owner_company_id)


def can_mutate(actor, container) -> bool:
    """Admins may change anything; everyone else only what they created."""
    if actor is None or container is None:
        return False
    if is_admin(actor):
        return True
    return container.created_by is not None and container.created_by == actor.id


def visible_containers(
    actor,
    permission,
    containers: Iterable,
    assignments: Iterable = (),
    owner_companies: Optional[Mapping[UUID, Optional[UUID]]] = None,
) -> List:
    """Filter ``containers`` down to those ``actor`` may view, keeping order.

    ``owner_companies`` maps a creator's user id to that user's company id.
    """
    owner_companies = owner_companies or {}
    assignments = list(assignments)
    return [
        container
        for container in containers
        if can_view(
            actor,
            permission,
            container,
            assignments,
            owner_companies.get(container.created_by),
        )
    ]
