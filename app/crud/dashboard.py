"""Admin dashboard aggregates over a rolling timeframe."""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.models.order import Order, OrderStatus
from app.models.product import Product
from app.models.user import KYCStatus, User
from app.services.order_lifecycle import BLOCKING_ORDER_STATUSES
from app.utils.timeutils import utcnow

TIMEFRAME_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}


def timeframe_window(timeframe: str, now: datetime = None) -> Tuple[datetime, datetime, datetime]:
    """(previous_start, current_start, now) for a timeframe key."""
    if timeframe not in TIMEFRAME_DAYS:
        raise ValidationError(f"timeframe must be one of: {', '.join(TIMEFRAME_DAYS)}")
    now = now or utcnow()
    days = TIMEFRAME_DAYS[timeframe]
    start = now - timedelta(days=days)
    return start - timedelta(days=days), start, now


def growth_rate(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)


def _count_between(db: Session, column, start: datetime, end: datetime, *filters) -> int:
    return db.query(func.count()).filter(column >= start, column < end, *filters).scalar() or 0


def _revenue_between(db: Session, start: datetime, end: datetime) -> Tuple[float, float]:
    revenue, commission = db.query(
        func.coalesce(func.sum(Order.total_amount), 0.0),
        func.coalesce(func.sum(Order.commission_amount), 0.0),
    ).filter(
        Order.created_at >= start,
        Order.created_at < end,
        Order.order_status != OrderStatus.cancelled.value,
    ).one()
    return round(float(revenue), 2), round(float(commission), 2)


def _group_counts(db: Session, column, *filters) -> Dict[str, int]:
    return {value: count for value, count in db.query(column, func.count()).filter(*filters).group_by(column).all()}


def overview(db: Session, timeframe: str = "30d") -> dict:
    previous_start, start, now = timeframe_window(timeframe)

    new_users = _count_between(db, User.created_at, start, now)
    previous_users = _count_between(db, User.created_at, previous_start, start)
    period_orders = _count_between(db, Order.created_at, start, now)
    previous_orders = _count_between(db, Order.created_at, previous_start, start)
    revenue, commission = _revenue_between(db, start, now)
    previous_revenue, _ = _revenue_between(db, previous_start, start)

    return {
        "timeframe": timeframe,
        "total_users": db.query(func.count(User.id)).scalar(),
        "new_users": new_users,
        "total_products": db.query(func.count(Product.id)).scalar(),
        "total_orders": db.query(func.count(Order.id)).scalar(),
        "period_orders": period_orders,
        "period_revenue": revenue,
        "period_commission": commission,
        "active_rentals": db.query(func.count(Order.id)).filter(
            Order.order_status.in_(BLOCKING_ORDER_STATUSES)).scalar(),
        "pending_kyc": db.query(func.count(User.id)).filter(User.kyc_status == KYCStatus.pending.value).scalar(),
        "user_growth_rate": growth_rate(new_users, previous_users),
        "order_growth_rate": growth_rate(period_orders, previous_orders),
        "revenue_growth_rate": growth_rate(revenue, previous_revenue),
        "orders_by_status": _group_counts(db, Order.order_status),
    }


def order_analytics(db: Session, timeframe: str = "30d") -> dict:
    _, start, now = timeframe_window(timeframe)
    orders = db.query(Order).filter(Order.created_at >= start, Order.created_at < now).all()

    daily = defaultdict(lambda: {"orders": 0, "revenue": 0.0, "commission": 0.0})
    cancelled = 0
    for order in orders:
        point = daily[order.created_at.date()]
        point["orders"] += 1
        if order.order_status == OrderStatus.cancelled.value:
            cancelled += 1
            continue
        point["revenue"] += order.total_amount or 0.0
        point["commission"] += order.commission_amount or 0.0

    kept = [o for o in orders if o.order_status != OrderStatus.cancelled.value]
    average = sum(o.total_amount for o in kept) / len(kept) if kept else 0.0
    period_filter = (Order.created_at >= start, Order.created_at < now)
    return {
        "timeframe": timeframe,
        "daily": [
            {"day": day, "orders": p["orders"], "revenue": round(p["revenue"], 2),
             "commission": round(p["commission"], 2)}
            for day, p in sorted(daily.items())
        ],
        "orders_by_status": _group_counts(db, Order.order_status, *period_filter),
        "orders_by_delivery_status": _group_counts(db, Order.delivery_status, *period_filter),
        "average_order_value": round(average, 2),
        "cancellation_rate": round(cancelled / len(orders) * 100, 2) if orders else 0.0,
    }


def revenue_analytics(db: Session, timeframe: str = "30d") -> dict:
    _, start, now = timeframe_window(timeframe)
    period = (
        Order.created_at >= start,
        Order.created_at < now,
        Order.order_status != OrderStatus.cancelled.value,
    )
    gross, commission, late_fees, damage_fees, discounts = db.query(
        func.coalesce(func.sum(Order.total_amount), 0.0),
        func.coalesce(func.sum(Order.commission_amount), 0.0),
        func.coalesce(func.sum(Order.late_fee), 0.0),
        func.coalesce(func.sum(Order.damage_fee), 0.0),
        func.coalesce(func.sum(Order.discount_amount), 0.0),
    ).filter(*period).one()

    by_category = (
        db.query(Product.category, func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0.0))
        .join(Product, Product.id == Order.product_id)
        .filter(*period)
        .group_by(Product.category)
        .all()
    )
    return {
        "timeframe": timeframe,
        "gross_revenue": round(float(gross), 2),
        "commission": round(float(commission), 2),
        "late_fees": round(float(late_fees), 2),
        "damage_fees": round(float(damage_fees), 2),
        "discounts": round(float(discounts), 2),
        "by_category": [
            {"category": category, "orders": count, "revenue": round(float(revenue), 2)}
            for category, count, revenue in by_category
        ],
    }


def product_analytics(db: Session, timeframe: str = "30d", limit: int = 10) -> dict:
    _, start, now = timeframe_window(timeframe)
    revenue = func.coalesce(func.sum(Order.total_amount), 0.0)
    top = (
        db.query(Product.id, Product.title, Product.category, func.count(Order.id), revenue)
        .join(Order, Order.product_id == Product.id)
        .filter(
            Order.created_at >= start,
            Order.created_at < now,
            Order.order_status != OrderStatus.cancelled.value,
        )
        .group_by(Product.id, Product.title, Product.category)
        .order_by(func.count(Order.id).desc(), revenue.desc())
        .limit(limit)
        .all()
    )
    return {
        "timeframe": timeframe,
        "products_by_category": _group_counts(db, Product.category),
        "products_by_moderation_status": _group_counts(db, Product.moderation_status),
        "top_products": [
            {"product_id": pid, "title": title, "category": category, "orders": count,
             "revenue": round(float(total), 2)}
            for pid, title, category, count, total in top
        ],
    }
