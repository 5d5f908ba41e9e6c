import pytest

from app.core.exceptions import ConflictError, NotFoundError
from app.crud import wishlist as crud_wishlist


def test_duplicate_wishlist_entry_rejected(db, make_user, make_product):
    buyer = make_user()
    product = make_product(make_user("seller"))

    crud_wishlist.add_to_wishlist(db, buyer, product.id)
    with pytest.raises(ConflictError, match="already in your wishlist"):
        crud_wishlist.add_to_wishlist(db, buyer, product.id)

    assert crud_wishlist.wishlist_status(db, buyer, product.id) == {"in_wishlist": True}
    assert crud_wishlist.wishlist_status(db, make_user(), product.id) == {"in_wishlist": False}


def test_remove_missing_item(db, make_user, make_product):
    buyer = make_user()
    product = make_product(make_user("seller"))
    with pytest.raises(NotFoundError):
        crud_wishlist.remove_from_wishlist(db, buyer, product.id)

    crud_wishlist.add_to_wishlist(db, buyer, product.id)
    crud_wishlist.remove_from_wishlist(db, buyer, product.id)
    assert crud_wishlist.wishlist_status(db, buyer, product.id) == {"in_wishlist": False}
