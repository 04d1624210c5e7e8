from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from marketplace.core.auth_dependencies import get_current_user
from marketplace.core.database import get_db
from marketplace.models.enums import ContainerType
from marketplace.models.identity import User
from marketplace.schemas.container_schema import FacetCount
from marketplace.schemas.stats_schema import ContainerStats, StatsScope
from marketplace.services import gateway

router = APIRouter(tags=["Statistics"])


@router.get("/stats", response_model=ContainerStats)
def get_stats(
    scope: StatsScope = Query(default=StatsScope.VISIBLE),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return gateway.get_stats(db, current_user, scope)


@router.get("/filters/industries", response_model=List[FacetCount])
def list_industries(
    type_param: Optional[ContainerType] = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return gateway.list_facets(db, current_user, "industry", type_param)


@router.get("/filters/departments", response_model=List[FacetCount])
def list_departments(
    type_param: Optional[ContainerType] = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return gateway.list_facets(db, current_user, "department", type_param)
