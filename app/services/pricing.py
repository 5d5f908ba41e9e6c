from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.models.order import CommissionRule
from app.models.product import Product


@dataclass
class RentalQuote:
    rental_days: int
    rental_price: float
    security_deposit: float
    try_on_fee: float

    @property
    def total(self) -> float:
        return round(self.rental_price + self.security_deposit + self.try_on_fee, 2)


def quote_rental(product: Product, start: date, end: date, try_on: bool = False) -> RentalQuote:
    """Prices always come from the product row, never from the client."""
    days = (end - start).days
    if days <= 0:
        raise ValidationError("Rental end date must be after start date")
    if try_on and not product.try_on_available:
        raise ValidationError("Try-on is not available for this product")

    rental_price = round(product.rental_price_per_day * days, 2)
    deposit = round(rental_price * (product.security_deposit_percentage or 0) / 100, 2)
    return RentalQuote(
        rental_days=days,
        rental_price=rental_price,
        security_deposit=deposit,
        try_on_fee=settings.TRY_ON_FEE if try_on else 0.0,
    )


def commission_percentage_for(db: Session, product: Product) -> float:
    """Product override, then the category rule, then the default rule."""
    if product.commission_percentage is not None:
        return product.commission_percentage

    rule = db.query(CommissionRule).filter(
        CommissionRule.category == product.category,
        CommissionRule.is_active.is_(True),
    ).first()
    if rule is None:
        rule = db.query(CommissionRule).filter(
            CommissionRule.category.is_(None),
            CommissionRule.is_active.is_(True),
        ).first()
    return rule.percentage if rule else settings.DEFAULT_COMMISSION_PERCENTAGE


def commission_amount(rental_price: float, percentage: float) -> float:
    return round(rental_price * percentage / 100, 2)
