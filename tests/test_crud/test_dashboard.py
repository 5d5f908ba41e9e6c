from datetime import timedelta

import pytest

from app.core.exceptions import ValidationError
from app.crud import dashboard as crud_dashboard
from app.utils.timeutils import utcnow


@pytest.mark.parametrize("current, previous, expected", [
    (0, 0, 0.0),
    (5, 0, 100.0),
    (3, 2, 50.0),
    (1, 4, -75.0),
])
def test_growth_rate(current, previous, expected):
    assert crud_dashboard.growth_rate(current, previous) == expected


def test_unknown_timeframe():
    with pytest.raises(ValidationError, match="timeframe"):
        crud_dashboard.timeframe_window("2w")


def test_overview_compares_against_previous_window(db, make_user, make_product, make_order):
    seller, buyer = make_user("seller"), make_user()
    product = make_product(seller)
    earlier = utcnow() - timedelta(days=40)
    for _ in range(2):
        make_order(buyer, product, created_at=earlier)
    for _ in range(3):
        make_order(buyer, product)
    make_order(buyer, product, order_status="cancelled")

    overview = crud_dashboard.overview(db, "30d")

    assert overview["total_orders"] == 6
    assert overview["period_orders"] == 4
    # 4 orders against 2 in the previous 30 days
    assert overview["order_growth_rate"] == 100.0
    # cancelled orders carry no revenue: 3 * 1200 against 2 * 1200
    assert overview["period_revenue"] == 3600.0
    assert overview["revenue_growth_rate"] == 50.0
    # every user signed up inside the window
    assert overview["user_growth_rate"] == 100.0
    assert overview["orders_by_status"] == {"upcoming": 5, "cancelled": 1}
    assert overview["active_rentals"] == 5
