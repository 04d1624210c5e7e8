from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from marketplace.core.auth_dependencies import get_current_user
from marketplace.core.database import get_db
from marketplace.models.identity import User
from marketplace.schemas.user_schema import (
    PermissionOut,
    PermissionUpdate,
    RoleUpdate,
    UserCreate,
    UserOut,
    UserWithPermissionsOut,
)
from marketplace.services import gateway
from .dependencies import get_event_publisher

router = APIRouter(tags=["Users"])


@router.get("/me", response_model=UserWithPermissionsOut)
def get_me(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return gateway.get_me(db, current_user)


@router.get("/", response_model=List[UserWithPermissionsOut])
def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return gateway.list_users(db, current_user)


@router.post("/", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return gateway.create_user(db, current_user, payload)


@router.put("/{user_id}/permissions", response_model=PermissionOut)
def set_user_permission(
    user_id: UUID,
    payload: PermissionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    publisher=Depends(get_event_publisher),
):
    return gateway.set_user_permission(db, current_user, user_id, payload, publisher=publisher)


@router.put("/{user_id}/role", response_model=UserOut)
def set_user_role(
    user_id: UUID,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return gateway.set_user_role(db, current_user, user_id, payload.role)
