from datetime import timedelta

import pytest

from app.core.exceptions import ConflictError, ValidationError
from app.crud import order as crud_order
from app.models.notification import NotificationOutbox
from app.models.promo import Referral, UserReward
from app.schemas.order import OrderCreate
from app.services.referral_service import ReferralService
from app.utils.timeutils import today


@pytest.fixture
def referred(db, make_user):
    referrer = make_user(referral_code="ASHA7Q2K9P")
    buyer = make_user()
    ReferralService.process_signup(db, buyer, "asha7q2k9p")
    db.commit()
    return referrer, buyer


def _book(db, buyer, product, offset):
    start = today() + timedelta(days=offset)
    return crud_order.create_rental(db, buyer, OrderCreate(
        product_id=product.id, rental_start_date=start, rental_end_date=start + timedelta(days=2),
    ))


def test_signup_rules(db, make_user, referred):
    referrer, buyer = referred
    with pytest.raises(ConflictError):
        ReferralService.process_signup(db, buyer, referrer.referral_code)
    with pytest.raises(ValidationError):
        ReferralService.process_signup(db, referrer, referrer.referral_code)


def test_first_purchase_completes_referral(db, make_user, make_product, referred):
    referrer, buyer = referred
    product = make_product(make_user("seller"))

    _book(db, buyer, product, offset=2)

    referral = db.query(Referral).one()
    assert referral.status == "completed"
    assert referral.completed_at is not None
    reward = db.query(UserReward).one()
    assert reward.user_id == referrer.id
    assert reward.amount == 100.0
    assert db.query(NotificationOutbox).filter(
        NotificationOutbox.event == "referral_completed",
        NotificationOutbox.user_id == referrer.id,
    ).count() == 1

    # later purchases do not pay out again
    _book(db, buyer, product, offset=10)
    assert db.query(UserReward).count() == 1


def test_stats_after_completion(db, make_user, make_product, referred):
    referrer, buyer = referred
    _book(db, buyer, make_product(make_user("seller")), offset=2)

    stats = ReferralService.stats(db, referrer)
    assert stats["referral_code"] == "ASHA7Q2K9P"
    assert stats["total_referrals"] == 1
    assert stats["completed_referrals"] == 1
    assert stats["pending_referrals"] == 0
    assert stats["total_rewards"] == 100.0
