from datetime import timedelta

import pytest

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.promo import PromoCode, PromoCodeClaim, Referral, ReferralReward
from app.services import promo_service
from app.utils.timeutils import utcnow


@pytest.fixture
def make_promo(db):
    def _make(code="SAVE50", **fields):
        values = {"discount_type": "percentage", "discount_value": 50}
        values.update(fields)
        promo = PromoCode(code=code, **values)
        db.add(promo)
        db.commit()
        db.refresh(promo)
        return promo

    return _make


def test_percentage_discount_clamped_to_max():
    assert promo_service.compute_discount("percentage", 50, 1000, 200) == 200


def test_flat_discount_never_exceeds_total():
    assert promo_service.compute_discount("flat", 500, 300) == 300


def test_valid_code_is_case_insensitive(db, make_user, make_promo):
    user = make_user()
    make_promo(max_discount_amount=200)
    result = promo_service.validate_promo_code(db, "save50", user, 1000)
    assert result["valid"] is True
    assert result["discount_amount"] == 200
    assert result["final_amount"] == 800


def test_unknown_code(db, make_user):
    with pytest.raises(NotFoundError):
        promo_service.evaluate_promo(db, "NOPE", make_user(), 100)


def test_rule_chain_stops_at_inactive_before_expiry(db, make_user, make_promo):
    make_promo(is_active=False, expires_at=utcnow() - timedelta(days=1))
    result = promo_service.validate_promo_code(db, "SAVE50", make_user(), 1000)
    assert result["valid"] is False
    assert result["message"] == "Promo code is inactive"


def test_expired_code(db, make_user, make_promo):
    make_promo(expires_at=utcnow() - timedelta(days=1))
    with pytest.raises(ValidationError, match="expired"):
        promo_service.evaluate_promo(db, "SAVE50", make_user(), 1000)


def test_usage_cap(db, make_user, make_promo):
    make_promo(usage_limit=1, usage_count=1)
    with pytest.raises(ValidationError, match="usage limit"):
        promo_service.evaluate_promo(db, "SAVE50", make_user(), 1000)


def test_sellers_only_code_rejects_buyer(db, make_user, make_promo):
    make_promo(eligibility="sellers")
    with pytest.raises(ValidationError, match="sellers"):
        promo_service.evaluate_promo(db, "SAVE50", make_user("buyer"), 1000)


def test_new_user_window(db, make_user, make_promo):
    make_promo(eligibility="new_users")
    veteran = make_user(created_at=utcnow() - timedelta(days=90))
    with pytest.raises(ValidationError, match="new users"):
        promo_service.evaluate_promo(db, "SAVE50", veteran, 1000)
    assert promo_service.evaluate_promo(db, "SAVE50", make_user(), 1000).discount_amount == 500


def test_minimum_order_amount(db, make_user, make_promo):
    make_promo(min_order_amount=500)
    with pytest.raises(ValidationError, match="Minimum order amount"):
        promo_service.evaluate_promo(db, "SAVE50", make_user(), 499)


def test_referral_gate_needs_completed_referrals(db, make_user, make_promo):
    referrer = make_user()
    friend = make_user()
    promo = make_promo(code="FRIENDS")
    db.add(ReferralReward(promo_code_id=promo.id, required_referrals=1))
    db.commit()

    with pytest.raises(ValidationError, match="referral"):
        promo_service.evaluate_promo(db, "FRIENDS", referrer, 1000)

    db.add(Referral(referrer_id=referrer.id, referred_id=friend.id, referral_code="X", status="completed"))
    db.commit()
    evaluation = promo_service.evaluate_promo(db, "FRIENDS", referrer, 1000)
    promo_service.redeem_promo(db, evaluation, referrer)
    db.commit()

    with pytest.raises(ValidationError, match="already claimed"):
        promo_service.evaluate_promo(db, "FRIENDS", referrer, 1000)


def test_redeem_increments_usage_and_records_claim(db, make_user, make_promo):
    user = make_user()
    promo = make_promo(usage_limit=2)
    evaluation = promo_service.evaluate_promo(db, "SAVE50", user, 100)
    promo_service.redeem_promo(db, evaluation, user)
    db.commit()
    db.refresh(promo)
    assert promo.usage_count == 1
    assert db.query(PromoCodeClaim).filter(PromoCodeClaim.user_id == user.id).count() == 1


def test_redeem_refuses_past_the_cap(db, make_user, make_promo):
    user = make_user()
    make_promo(usage_limit=1)
    evaluation = promo_service.evaluate_promo(db, "SAVE50", user, 100)
    # another checkout used the last slot after evaluation
    db.query(PromoCode).update({PromoCode.usage_count: 1})
    db.commit()
    with pytest.raises(ConflictError):
        promo_service.redeem_promo(db, evaluation, user)
