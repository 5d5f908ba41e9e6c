import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from app.crud import order as crud_order
from app.models.order import DeliveryAssignment, DeliveryStatus
from app.models.user import User
from app.utils.pagination import paginate
from app.utils.timeutils import today

logger = logging.getLogger(__name__)

ASSIGNMENT_FLOW = {
    "assigned": {"accepted", "cancelled"},
    "accepted": {"in_progress", "cancelled"},
    "in_progress": {"completed"},
    "completed": set(),
    "cancelled": set(),
}

# assignment status -> order delivery_status, for outbound deliveries
DELIVERY_STATUS_FOR = {
    "accepted": DeliveryStatus.accepted.value,
    "in_progress": DeliveryStatus.out_for_pickup.value,
    "completed": DeliveryStatus.delivered.value,
    "cancelled": DeliveryStatus.pending.value,
}


def _owned(db: Session, assignment_id: int, partner: User) -> DeliveryAssignment:
    assignment = db.query(DeliveryAssignment).filter(DeliveryAssignment.id == assignment_id).first()
    if not assignment:
        raise NotFoundError("Assignment", assignment_id)
    if assignment.delivery_partner_id != partner.id:
        raise ForbiddenError("This assignment does not belong to you")
    return assignment


def assigned_deliveries(db: Session, partner: User, page: int, limit: int) -> dict:
    query = db.query(DeliveryAssignment).filter(
        DeliveryAssignment.delivery_partner_id == partner.id,
        DeliveryAssignment.status.in_(("assigned", "accepted", "in_progress")),
    )
    return paginate(query.order_by(DeliveryAssignment.assigned_at.asc()), page, limit)


def delivery_history(db: Session, partner: User, page: int, limit: int, status: Optional[str] = None) -> dict:
    query = db.query(DeliveryAssignment).filter(DeliveryAssignment.delivery_partner_id == partner.id)
    if status:
        query = query.filter(DeliveryAssignment.status == status)
    return paginate(query.order_by(DeliveryAssignment.updated_at.desc()), page, limit)


def update_assignment_status(db: Session, assignment_id: int, status: str, partner: User) -> DeliveryAssignment:
    assignment = _owned(db, assignment_id, partner)
    if assignment.status == status:
        return assignment
    if status not in ASSIGNMENT_FLOW.get(assignment.status, set()):
        raise ConflictError(f"Cannot move assignment from '{assignment.status}' to '{status}'")
    assignment.status = status

    if assignment.assignment_type != "return_pickup":
        crud_order.update_delivery_status(db, assignment.order_id, DELIVERY_STATUS_FOR[status], actor_id=partner.id)
    elif status == "completed":
        crud_order.process_return(db, assignment.order_id, today(), actor_id=partner.id)
    # the order write is a no-op when it already matches, so commit the assignment here
    db.commit()
    db.refresh(assignment)
    logger.info(f"Assignment {assignment.id} for order {assignment.order_id} is now {status}")
    return assignment


def add_notes(db: Session, assignment_id: int, notes: str, partner: User) -> DeliveryAssignment:
    assignment = _owned(db, assignment_id, partner)
    assignment.notes = f"{assignment.notes}\n{notes}" if assignment.notes else notes
    db.commit()
    db.refresh(assignment)
    return assignment
