from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from marketplace.core.auth_dependencies import get_current_user
from marketplace.core.database import get_db
from marketplace.models.identity import User
from marketplace.schemas.company_schema import AssignmentCreate, AssignmentOut, CompanyCreate, CompanyOut
from marketplace.schemas.container_schema import ContainerOut
from marketplace.services import gateway
from .dependencies import get_event_publisher

router = APIRouter(tags=["Companies"])


@router.post("/", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
def create_company(
    payload: CompanyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return gateway.create_company(db, current_user, payload)


@router.get("/me/containers", response_model=List[ContainerOut])
def list_my_company_containers(
    search: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return gateway.list_company_containers(db, current_user, search)


@router.get("/{company_id}", response_model=CompanyOut)
def get_company(
    company_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return gateway.get_company(db, current_user, company_id)


@router.delete("/{company_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_company(
    company_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    publisher=Depends(get_event_publisher),
):
    gateway.delete_company(db, current_user, company_id, publisher=publisher)
    return None


@router.post("/{company_id}/containers", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def assign_container(
    company_id: UUID,
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    publisher=Depends(get_event_publisher),
):
    return gateway.assign_container_to_company(
        db,
        current_user,
        company_id,
        payload.container_id,
        publisher=publisher,
    )


@router.delete("/{company_id}/containers/{container_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_container(
    company_id: UUID,
    container_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    publisher=Depends(get_event_publisher),
):
    gateway.revoke_container_from_company(db, current_user, company_id, container_id, publisher=publisher)
    return None
