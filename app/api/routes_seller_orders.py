from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.crud import admin as crud_admin
from app.crud import seller_order as crud_seller_order
from app.db.deps import get_current_seller, get_db
from app.models.user import User
from app.schemas.admin import PaymentOut, PaymentPage, SellerEarnings, WithdrawalRequest
from app.schemas.order import (
    CancelRequest,
    DamageReportRequest,
    OrderOut,
    OrderPage,
    SellerDeliveryUpdate,
    SellerRefundRequest,
)

router = APIRouter()


@router.get("/", response_model=OrderPage)
def list_orders(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    seller: User = Depends(get_current_seller),
):
    return crud_seller_order.list_seller_orders(db, seller, page, limit, status)


@router.get("/transactions")
def total_transactions(db: Session = Depends(get_db), seller: User = Depends(get_current_seller)):
    return crud_seller_order.total_transactions(db, seller)


@router.get("/earnings", response_model=SellerEarnings)
def my_earnings(db: Session = Depends(get_db), seller: User = Depends(get_current_seller)):
    return crud_admin.seller_earnings(db, seller.id)


@router.post("/withdrawals", response_model=PaymentOut, status_code=201)
def request_withdrawal(
    data: WithdrawalRequest,
    db: Session = Depends(get_db),
    seller: User = Depends(get_current_seller),
):
    return crud_admin.request_withdrawal(db, seller, data.amount)


@router.get("/withdrawals", response_model=PaymentPage)
def my_withdrawals(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    seller: User = Depends(get_current_seller),
):
    return crud_admin.list_withdrawals(db, page, limit, status, user_id=seller.id)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, db: Session = Depends(get_db), seller: User = Depends(get_current_seller)):
    return crud_seller_order.get_seller_order(db, order_id, seller)


@router.put("/{order_id}/delivery-status", response_model=OrderOut)
def update_delivery_status(
    order_id: int,
    data: SellerDeliveryUpdate,
    db: Session = Depends(get_db),
    seller: User = Depends(get_current_seller),
):
    return crud_seller_order.update_delivery_status(db, order_id, data.status, seller)


@router.post("/{order_id}/damage", response_model=OrderOut)
def report_damage(
    order_id: int,
    data: DamageReportRequest,
    db: Session = Depends(get_db),
    seller: User = Depends(get_current_seller),
):
    return crud_seller_order.report_damage(db, order_id, data.description, data.photos, seller)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    data: CancelRequest,
    db: Session = Depends(get_db),
    seller: User = Depends(get_current_seller),
):
    return crud_seller_order.cancel_order(db, order_id, data.reason, seller)


@router.post("/{order_id}/refund-deposit", response_model=OrderOut)
def refund_deposit(
    order_id: int,
    data: SellerRefundRequest,
    db: Session = Depends(get_db),
    seller: User = Depends(get_current_seller),
):
    return crud_seller_order.refund_deposit(db, order_id, data.refund_amount, seller)
