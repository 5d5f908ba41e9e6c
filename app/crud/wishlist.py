from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError
from app.crud.product import get_product, product_view
from app.models.cart import WishlistItem
from app.models.user import User
from app.services.storage_service import StorageService
from app.utils.pagination import paginate


def add_to_wishlist(db: Session, buyer: User, product_id: int) -> WishlistItem:
    get_product(db, product_id)
    exists = db.query(WishlistItem).filter(
        WishlistItem.buyer_id == buyer.id,
        WishlistItem.product_id == product_id,
    ).first()
    if exists:
        raise ConflictError("Product is already in your wishlist")

    item = WishlistItem(buyer_id=buyer.id, product_id=product_id)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def remove_from_wishlist(db: Session, buyer: User, product_id: int) -> None:
    deleted = db.query(WishlistItem).filter(
        WishlistItem.buyer_id == buyer.id,
        WishlistItem.product_id == product_id,
    ).delete(synchronize_session=False)
    if not deleted:
        raise NotFoundError("Wishlist item")
    db.commit()


def list_wishlist(db: Session, buyer: User, page: int, limit: int, storage: StorageService) -> dict:
    query = db.query(WishlistItem).filter(WishlistItem.buyer_id == buyer.id).order_by(WishlistItem.created_at.desc())
    result = paginate(query, page, limit)
    result["items"] = [
        {"id": w.id, "product": product_view(w.product, storage), "created_at": w.created_at}
        for w in result["items"]
    ]
    return result


def wishlist_status(db: Session, buyer: User, product_id: int) -> dict:
    exists = db.query(WishlistItem.id).filter(
        WishlistItem.buyer_id == buyer.id,
        WishlistItem.product_id == product_id,
    ).first()
    return {"in_wishlist": exists is not None}
