from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.crud import order as crud_order
from app.db.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.order import CancelRequest, ExtendRentalRequest, OrderCreate, OrderOut, OrderPage

router = APIRouter()


@router.post("/", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(data: OrderCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Book a rental. Prices are always taken from the product, never from the request."""
    return crud_order.create_rental(db, user, data)


@router.get("/mine", response_model=OrderPage)
def list_my_orders(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return crud_order.list_user_rentals(db, user, page, limit, status=status)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return crud_order.get_order_for(db, order_id, user)


@router.post("/{order_id}/extend", response_model=OrderOut)
def extend_order(
    order_id: int,
    data: ExtendRentalRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return crud_order.extend_rental(db, order_id, data.new_end_date, user)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    data: CancelRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    crud_order.get_order_for(db, order_id, user)
    return crud_order.cancel_rental(db, order_id, data.reason, actor_id=user.id)
