from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from marketplace.core.auth_dependencies import get_current_user
from marketplace.core.database import get_db
from marketplace.models.enums import ContainerType, Visibility
from marketplace.models.identity import User
from marketplace.schemas.container_schema import (
    ContainerBulkCreate,
    ContainerCreate,
    ContainerFilters,
    ContainerOut,
    ContainerUpdate,
    ViewCountOut,
)
from marketplace.services import gateway
from shared import AccessConfig
from .dependencies import get_access_config, get_event_publisher

router = APIRouter(tags=["Containers"])


@router.get("/", response_model=List[ContainerOut])
def list_containers(
    type_param: Optional[ContainerType] = Query(default=None, alias="type"),
    search: Optional[str] = Query(default=None),
    industry: Optional[str] = Query(default=None),
    department: Optional[str] = Query(default=None),
    visibility: Optional[Visibility] = Query(default=None),
    is_marketplace: Optional[bool] = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    filters = ContainerFilters(
        type=type_param,
        search=search,
        industry=industry,
        department=department,
        visibility=visibility,
        is_marketplace=is_marketplace,
    )
    return gateway.list_containers(db, current_user, filters)


@router.post("/", response_model=ContainerOut, status_code=status.HTTP_201_CREATED)
def create_container(
    payload: ContainerCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    publisher=Depends(get_event_publisher),
):
    return gateway.create_container(db, current_user, payload, publisher=publisher)


@router.post("/bulk", response_model=List[ContainerOut], status_code=status.HTTP_201_CREATED)
def create_containers_bulk(
    payload: ContainerBulkCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    access: AccessConfig = Depends(get_access_config),
    publisher=Depends(get_event_publisher),
):
    return gateway.create_containers_bulk(
        db,
        current_user,
        payload.containers,
        max_items=access.max_bulk_import,
        publisher=publisher,
    )


@router.get("/{container_id}", response_model=ContainerOut)
def get_container(
    container_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    access: AccessConfig = Depends(get_access_config),
):
    return gateway.get_container(db, current_user, container_id, conceal_forbidden=access.conceal_forbidden)


@router.put("/{container_id}", response_model=ContainerOut)
def update_container(
    container_id: UUID,
    payload: ContainerUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    access: AccessConfig = Depends(get_access_config),
):
    return gateway.update_container(
        db,
        current_user,
        container_id,
        payload,
        conceal_forbidden=access.conceal_forbidden,
    )


@router.delete("/{container_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_container(
    container_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    access: AccessConfig = Depends(get_access_config),
    publisher=Depends(get_event_publisher),
):
    gateway.delete_container(
        db,
        current_user,
        container_id,
        conceal_forbidden=access.conceal_forbidden,
        publisher=publisher,
    )
    return None


@router.post("/{container_id}/view", response_model=ViewCountOut)
def record_view(
    container_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    access: AccessConfig = Depends(get_access_config),
):
    views = gateway.record_view(db, current_user, container_id, conceal_forbidden=access.conceal_forbidden)
    return ViewCountOut(container_id=container_id, views=views)
