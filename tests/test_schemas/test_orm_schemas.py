import warnings

import pytest
from pydantic.warnings import PydanticDeprecatedSince20

from app.schemas.admin import DeliveryAssignmentOut, PaymentOut
from app.schemas.notification import NotificationOut
from app.schemas.order import OrderOut
from app.schemas.review import ReviewOut
from app.schemas.user import UserOut


@pytest.mark.parametrize("response_model", [OrderOut, UserOut, ReviewOut, NotificationOut, PaymentOut, DeliveryAssignmentOut])
def test_response_schemas_read_orm_rows(response_model):
    assert response_model.model_config["from_attributes"] is True


def test_order_out_from_row_without_deprecation(make_user, make_product, make_order):
    order = make_order(make_user(), make_product(make_user("seller")))
    with warnings.catch_warnings():
        warnings.simplefilter("error", PydanticDeprecatedSince20)
        out = OrderOut.model_validate(order)
    assert out.id == order.id
    assert out.order_status == "upcoming"
