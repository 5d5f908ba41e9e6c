from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.crud import delivery as crud_delivery
from app.db.deps import get_current_delivery_partner, get_db
from app.models.user import User
from app.schemas.admin import (
    AssignmentNotesUpdate,
    AssignmentStatusUpdate,
    DeliveryAssignmentOut,
    DeliveryAssignmentPage,
)

router = APIRouter()


@router.get("/assignments", response_model=DeliveryAssignmentPage)
def assigned_deliveries(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    partner: User = Depends(get_current_delivery_partner),
):
    return crud_delivery.assigned_deliveries(db, partner, page, limit)


@router.get("/history", response_model=DeliveryAssignmentPage)
def delivery_history(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    partner: User = Depends(get_current_delivery_partner),
):
    return crud_delivery.delivery_history(db, partner, page, limit, status)


@router.put("/assignments/{assignment_id}/status", response_model=DeliveryAssignmentOut)
def update_assignment_status(
    assignment_id: int,
    data: AssignmentStatusUpdate,
    db: Session = Depends(get_db),
    partner: User = Depends(get_current_delivery_partner),
):
    return crud_delivery.update_assignment_status(db, assignment_id, data.status, partner)


@router.put("/assignments/{assignment_id}/notes", response_model=DeliveryAssignmentOut)
def add_notes(
    assignment_id: int,
    data: AssignmentNotesUpdate,
    db: Session = Depends(get_db),
    partner: User = Depends(get_current_delivery_partner),
):
    return crud_delivery.add_notes(db, assignment_id, data.notes, partner)
