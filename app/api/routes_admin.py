# app/api/routes_admin.py
# Admin console: users, orders, products, money, marketing, KYC and the notification outbox

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.crud import admin as crud_admin
from app.crud import order as crud_order
from app.crud import product as crud_product
from app.crud import user as crud_user
from app.db.deps import get_current_admin, get_db, get_notification_dispatcher, get_storage_service
from app.models.user import User
from app.schemas.admin import (
    CommissionRuleCreate,
    CommissionRuleOut,
    CommissionRuleUpdate,
    DeliveryAssignmentOut,
    DepositSummary,
    DispatchSummary,
    EarningsSummary,
    PaymentOut,
    PaymentPage,
    SellerEarnings,
    WithdrawalUpdate,
)
from app.schemas.common import MessageResponse
from app.schemas.kyc import KYCReviewRequest, KYCVerificationOut, KYCVerificationPage
from app.schemas.order import (
    AdminNoteRequest,
    AssignDeliveryRequest,
    CancelRequest,
    DamageClaimDecision,
    DeliveryStatusUpdate,
    LateFeeRequest,
    OrderAdminUpdate,
    OrderOrderStatusUpdate,
    OrderOut,
    OrderPage,
    OrderStatusUpdate,
    PaymentStatusUpdate,
    ReturnRequest,
    SecurityDepositRequest,
)
from app.schemas.product import (
    CommissionUpdate,
    FeaturedUpdate,
    ProductModerationUpdate,
    ProductOut,
    ProductPage,
)
from app.schemas.promo import (
    ApplyPromoToOrderRequest,
    PromoCodeCreate,
    PromoCodeOut,
    PromoCodePage,
    PromoCodeUpdate,
    ReferralPage,
    ReferralRewardCreate,
)
from app.schemas.user import UserOut, UserPage, UserRoleUpdate, UserStatusUpdate
from app.services import kyc_service
from app.services.notification_service import NotificationDispatcher
from app.services.storage_service import StorageService

router = APIRouter()


# Users

@router.get("/users", response_model=UserPage)
def list_users(
    role: Optional[str] = None,
    kyc_status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_user.list_users(db, page, limit, role=role, search=search, kyc_status=kyc_status)


@router.get("/users/{user_id}", response_model=UserOut)
def get_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(get_current_admin)):
    return crud_user.get_user(db, user_id)


@router.put("/users/{user_id}/status", response_model=UserOut)
def set_user_status(
    user_id: int,
    data: UserStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_user.set_user_active(db, user_id, data.is_active)


@router.put("/users/{user_id}/role", response_model=UserOut)
def set_user_role(
    user_id: int,
    data: UserRoleUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_user.set_user_role(db, user_id, data.role)


# Orders

@router.get("/orders", response_model=OrderPage)
def list_orders(
    order_status: Optional[str] = None,
    delivery_status: Optional[str] = None,
    buyer_id: Optional[int] = None,
    seller_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.list_orders(db, page, limit, order_status, delivery_status, buyer_id, seller_id)


@router.get("/orders/active", response_model=OrderPage)
def active_rentals(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.list_active_rentals(db, page, limit)


@router.get("/orders/overdue", response_model=OrderPage)
def overdue_rentals(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.list_overdue_rentals(db, page, limit)


@router.get("/orders/missed-pickups", response_model=OrderPage)
def missed_pickups(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.missed_pickups(db, page, limit)


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: int, db: Session = Depends(get_db), admin: User = Depends(get_current_admin)):
    return crud_order.get_order(db, order_id)


@router.put("/orders/{order_id}", response_model=OrderOut)
def update_order(
    order_id: int,
    data: OrderAdminUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.update_rental(db, order_id, data.model_dump(exclude_unset=True), actor_id=admin.id)


@router.put("/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """Delivery-stage status: pending, accepted, out_for_pickup, picked, delivered, returned, cancelled."""
    return crud_order.update_order_status(db, order_id, data.status, actor_id=admin.id)


@router.put("/orders/{order_id}/order-status", response_model=OrderOut)
def set_order_status(
    order_id: int,
    data: OrderOrderStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.set_order_status(db, order_id, data.order_status, actor_id=admin.id)


@router.put("/orders/{order_id}/delivery-status", response_model=OrderOut)
def update_delivery_status(
    order_id: int,
    data: DeliveryStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.update_delivery_status(
        db, order_id, data.status, partner_id=data.delivery_partner_id, actor_id=admin.id,
    )


@router.put("/orders/{order_id}/payment-status", response_model=OrderOut)
def update_payment_status(
    order_id: int,
    data: PaymentStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.update_payment_status(db, order_id, data.status)


@router.post("/orders/{order_id}/late-fee", response_model=OrderOut)
def apply_late_fee(
    order_id: int,
    data: LateFeeRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.apply_late_fee(db, order_id, data.amount, actor_id=admin.id)


@router.post("/orders/{order_id}/damage-claim", response_model=OrderOut)
def handle_damage_claim(
    order_id: int,
    data: DamageClaimDecision,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.handle_damage_claim(db, order_id, data.action, data.amount, reviewer_id=admin.id)


@router.post("/orders/{order_id}/security-deposit", response_model=OrderOut)
def process_security_deposit(
    order_id: int,
    data: SecurityDepositRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.process_security_deposit(db, order_id, data.action, data.refund_amount, actor_id=admin.id)


@router.post("/orders/{order_id}/return", response_model=OrderOut)
def process_return(
    order_id: int,
    data: ReturnRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.process_return(db, order_id, data.return_date, data.photo_url, actor_id=admin.id)


@router.post("/orders/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    data: CancelRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.cancel_rental(db, order_id, data.reason, actor_id=admin.id)


@router.post("/orders/{order_id}/notes", response_model=OrderOut)
def add_note(
    order_id: int,
    data: AdminNoteRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_order.add_admin_note(db, order_id, data.note, admin.id)


@router.post("/orders/{order_id}/assign-delivery", response_model=DeliveryAssignmentOut,
             status_code=status.HTTP_201_CREATED)
def assign_delivery(
    order_id: int,
    data: AssignDeliveryRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_admin.assign_delivery(
        db, order_id, data.delivery_partner_id, admin.id, data.assignment_type, data.notes,
    )


@router.post("/orders/{order_id}/apply-promo", response_model=OrderOut)
def apply_promo_to_order(
    order_id: int,
    data: ApplyPromoToOrderRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_admin.apply_promo_to_order(db, order_id, data.code, admin.id)


# Products

@router.get("/products", response_model=ProductPage)
def list_products(
    moderation_status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
    storage: StorageService = Depends(get_storage_service),
):
    result = crud_admin.list_all_products(db, page, limit, moderation_status)
    return crud_product.page_view(result, storage)


@router.put("/products/{product_id}/commission", response_model=ProductOut)
def update_commission(
    product_id: int,
    data: CommissionUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
    storage: StorageService = Depends(get_storage_service),
):
    product = crud_admin.update_platform_commission(db, product_id, data.commission_percentage)
    return crud_product.product_view(product, storage)


@router.put("/products/{product_id}/moderation", response_model=ProductOut)
def moderate_product(
    product_id: int,
    data: ProductModerationUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
    storage: StorageService = Depends(get_storage_service),
):
    product = crud_admin.moderate_product(db, product_id, data.moderation_status, data.notes)
    return crud_product.product_view(product, storage)


@router.put("/products/{product_id}/featured", response_model=ProductOut)
def set_featured(
    product_id: int,
    data: FeaturedUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
    storage: StorageService = Depends(get_storage_service),
):
    product = crud_admin.set_featured(db, product_id, data.is_featured)
    return crud_product.product_view(product, storage)


# Earnings, deposits and withdrawals

@router.get("/earnings", response_model=EarningsSummary)
def platform_earnings(db: Session = Depends(get_db), admin: User = Depends(get_current_admin)):
    return crud_admin.platform_earnings(db)


@router.get("/earnings/sellers/{seller_id}", response_model=SellerEarnings)
def seller_earnings(seller_id: int, db: Session = Depends(get_db), admin: User = Depends(get_current_admin)):
    return crud_admin.seller_earnings(db, seller_id)


@router.get("/security-deposits", response_model=OrderPage)
def security_deposits(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_admin.security_deposits(db, page, limit, status)


@router.get("/security-deposits/summary", response_model=DepositSummary)
def deposit_summary(db: Session = Depends(get_db), admin: User = Depends(get_current_admin)):
    return crud_admin.deposit_summary(db)


@router.get("/withdrawals", response_model=PaymentPage)
def list_withdrawals(
    status: Optional[str] = None,
    user_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_admin.list_withdrawals(db, page, limit, status, user_id)


@router.put("/withdrawals/{payment_id}", response_model=PaymentOut)
def process_withdrawal(
    payment_id: int,
    data: WithdrawalUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_admin.process_withdrawal_request(db, payment_id, data.payment_status, admin.id, data.reference)


# Promo codes and referrals

@router.post("/promo-codes", response_model=PromoCodeOut, status_code=status.HTTP_201_CREATED)
def create_promo_code(data: PromoCodeCreate, db: Session = Depends(get_db), admin: User = Depends(get_current_admin)):
    return crud_admin.create_promo_code(db, data, admin.id)


@router.get("/promo-codes", response_model=PromoCodePage)
def list_promo_codes(
    active_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_admin.list_promo_codes(db, page, limit, active_only)


@router.put("/promo-codes/{promo_id}", response_model=PromoCodeOut)
def update_promo_code(
    promo_id: int,
    data: PromoCodeUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_admin.update_promo_code(db, promo_id, data)


@router.post("/referral-rewards", response_model=MessageResponse)
def manage_referral_reward(
    data: ReferralRewardCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    reward = crud_admin.manage_referral_reward(db, data.promo_code_id, data.required_referrals)
    return {"message": f"Promo {reward.promo_code_id} now requires {reward.required_referrals} referral(s)"}


@router.get("/referrals", response_model=ReferralPage)
def list_referrals(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_admin.list_referrals(db, page, limit, status)


# Commission rules

@router.get("/commission-rules", response_model=List[CommissionRuleOut])
def list_commission_rules(db: Session = Depends(get_db), admin: User = Depends(get_current_admin)):
    return crud_admin.list_commission_rules(db)


@router.post("/commission-rules", response_model=CommissionRuleOut, status_code=status.HTTP_201_CREATED)
def create_commission_rule(
    data: CommissionRuleCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_admin.create_commission_rule(db, data)


@router.put("/commission-rules/{rule_id}", response_model=CommissionRuleOut)
def update_commission_rule(
    rule_id: int,
    data: CommissionRuleUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_admin.update_commission_rule(db, rule_id, data)


@router.delete("/commission-rules/{rule_id}", response_model=MessageResponse)
def delete_commission_rule(rule_id: int, db: Session = Depends(get_db), admin: User = Depends(get_current_admin)):
    crud_admin.delete_commission_rule(db, rule_id)
    return {"message": "Commission rule deleted"}


# KYC

@router.get("/kyc/pending", response_model=KYCVerificationPage)
def pending_kyc(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return kyc_service.pending_verifications(db, page, limit)


@router.put("/kyc/{verification_id}/review", response_model=KYCVerificationOut)
def review_kyc(
    verification_id: int,
    data: KYCReviewRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return kyc_service.review_verification(db, verification_id, data.action, admin.id, data.rejection_reason)


# Notification outbox

@router.post("/notifications/dispatch", response_model=DispatchSummary)
def dispatch_notifications(
    batch_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Deliver pending outbox rows now instead of waiting for the worker."""
    return dispatcher.dispatch_pending(db, batch_size)
