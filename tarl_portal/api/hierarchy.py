"""Hierarchy scope API router: the caller's slice of the organization tree."""

from typing import List, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tarl_portal.core.principal import Principal
from tarl_portal.core.security import RequireAction, get_current_principal
from tarl_portal.db.session import get_db
from tarl_portal.models.organization import School
from tarl_portal.models.student import Observation, Student
from tarl_portal.schemas.schemas import (
    HierarchyAssignRequest,
    MessageResponse,
    ObservationOut,
    SchoolOut,
    StudentOut,
    UserHierarchy,
)
from tarl_portal.services.hierarchy_service import hierarchy_service

router = APIRouter(prefix="/hierarchy", tags=["hierarchy"])


@router.get("/me", response_model=UserHierarchy)
async def my_hierarchy(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return hierarchy_service.get_user_hierarchy(db, principal.user_id)


@router.get("/schools", response_model=List[SchoolOut])
async def list_schools(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    hierarchy = hierarchy_service.get_user_hierarchy(db, principal.user_id)
    query = hierarchy_service.apply_scope(db.query(School), hierarchy, School)
    return query.order_by(School.name).all()


@router.get("/students", response_model=List[StudentOut])
async def list_students(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    hierarchy = hierarchy_service.get_user_hierarchy(db, principal.user_id)
    query = hierarchy_service.apply_scope(db.query(Student), hierarchy, Student)
    return query.order_by(Student.full_name).all()


@router.get("/observations", response_model=List[ObservationOut])
async def list_observations(
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequireAction("observations", "view")),
):
    hierarchy = hierarchy_service.get_user_hierarchy(db, principal.user_id)
    query = hierarchy_service.apply_scope(db.query(Observation), hierarchy, Observation)
    return query.order_by(Observation.id).all()


@router.post("/assign", response_model=MessageResponse, status_code=201)
async def assign(
    body: HierarchyAssignRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Assign a user to a zone, province, district, school or class."""
    hierarchy_service.ensure_can_manage(db, principal, body.user_id, body.level, body.target_id)
    hierarchy_service.assign_user_to_hierarchy(db, body.user_id, body.level, body.target_id, assigned_by=principal)
    return MessageResponse(message="Assignment saved")


@router.delete("/assign", response_model=MessageResponse)
async def revoke(
    user_id: int = Query(...),
    level: Literal["zone", "province", "district", "school", "class"] = Query(...),
    target_id: int = Query(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    hierarchy_service.ensure_can_manage(db, principal, user_id, level, target_id)
    hierarchy_service.revoke_user_assignment(db, user_id, level, target_id, revoked_by=principal)
    return MessageResponse(message="Assignment revoked")
