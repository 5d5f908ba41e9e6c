import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.cart import CartItem, WishlistItem
from app.models.order import Order
from app.models.product import AvailabilityStatus, ModerationStatus, Product
from app.models.user import User, UserRole
from app.schemas.product import ProductFields
from app.services.image_service import image_urls
from app.services.notification_service import enqueue_notification
from app.services.storage_service import StorageService
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)


def product_view(product: Product, storage: StorageService) -> dict:
    return {
        "id": product.id,
        "seller_id": product.seller_id,
        "title": product.title,
        "description": product.description,
        "category": product.category,
        "size": product.size,
        "image_urls": image_urls(storage, product.image_keys),
        "rental_price_per_day": product.rental_price_per_day,
        "security_deposit_percentage": product.security_deposit_percentage,
        "commission_percentage": product.commission_percentage,
        "try_on_available": product.try_on_available,
        "is_featured": product.is_featured,
        "availability_status": product.availability_status,
        "moderation_status": product.moderation_status,
        "created_at": product.created_at,
    }


def page_view(result: dict, storage: StorageService) -> dict:
    result["items"] = [product_view(p, storage) for p in result["items"]]
    return result


def get_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product", product_id)
    return product


def get_owned_product(db: Session, product_id: int, user: User) -> Product:
    product = get_product(db, product_id)
    if user.role != UserRole.admin.value and product.seller_id != user.id:
        raise ForbiddenError("You can only manage your own products")
    return product


def create_product(db: Session, seller: User, data: ProductFields, image_keys: List[str]) -> Product:
    product = Product(
        seller_id=seller.id,
        image_keys=image_keys,
        **data.model_dump(),
    )
    db.add(product)
    db.flush()
    enqueue_notification(db, seller.id, "product_listed", {"product_name": product.title})
    db.commit()
    db.refresh(product)
    logger.info(f"Product {product.id} created by seller {seller.id}")
    return product


def update_product(db: Session, product: Product, data: dict, new_image_keys: Optional[List[str]] = None,
                   keep_image_keys: Optional[List[str]] = None) -> Product:
    for field, value in data.items():
        if value is not None:
            setattr(product, field, value)

    if new_image_keys is not None or keep_image_keys is not None:
        kept = [k for k in (product.image_keys or []) if keep_image_keys is None or k in keep_image_keys]
        images = kept + (new_image_keys or [])
        if len(images) > settings.PRODUCT_MAX_IMAGES:
            raise ValidationError(f"At most {settings.PRODUCT_MAX_IMAGES} images per product")
        product.image_keys = images

    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product: Product, storage: StorageService) -> None:
    if db.query(Order.id).filter(Order.product_id == product.id).first():
        raise ConflictError("Product has rental history, hide it instead of deleting")

    product_id = product.id
    keys = list(product.image_keys or [])
    db.query(CartItem).filter(CartItem.product_id == product.id).delete(synchronize_session=False)
    db.query(WishlistItem).filter(WishlistItem.product_id == product.id).delete(synchronize_session=False)
    db.delete(product)
    db.commit()
    for key in keys:
        storage.delete_object(settings.PRODUCT_IMAGE_BUCKET_NAME, key)
    logger.info(f"Product {product_id} deleted with {len(keys)} image(s)")


def _public_query(db: Session):
    return db.query(Product).filter(Product.moderation_status == ModerationStatus.visible.value)


def list_products(
    db: Session,
    page: int,
    limit: int,
    category: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    size: Optional[str] = None,
    availability: Optional[str] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    sort: str = "newest",
) -> dict:
    query = _public_query(db)
    if category:
        query = query.filter(Product.category == category)
    if min_price is not None:
        query = query.filter(Product.rental_price_per_day >= min_price)
    if max_price is not None:
        query = query.filter(Product.rental_price_per_day <= max_price)
    if size:
        query = query.filter(Product.size == size)
    if availability:
        query = query.filter(Product.availability_status == availability)
    if featured is not None:
        query = query.filter(Product.is_featured.is_(featured))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Product.title.ilike(pattern), Product.description.ilike(pattern)))

    ordering = {
        "newest": Product.created_at.desc(),
        "price_asc": Product.rental_price_per_day.asc(),
        "price_desc": Product.rental_price_per_day.desc(),
    }.get(sort, Product.created_at.desc())
    return paginate(query.order_by(ordering, Product.id.desc()), page, limit)


def search_products(db: Session, term: str, page: int, limit: int) -> dict:
    if not term or not term.strip():
        raise ValidationError("Search term is required")
    return list_products(db, page, limit, search=term.strip())


def featured_products(db: Session, page: int, limit: int) -> dict:
    return list_products(db, page, limit, featured=True, availability=AvailabilityStatus.available.value)


def products_by_category(db: Session, category: str, page: int, limit: int) -> dict:
    return list_products(db, page, limit, category=category)


def seller_products(db: Session, seller_id: int, page: int, limit: int) -> dict:
    query = db.query(Product).filter(Product.seller_id == seller_id).order_by(Product.created_at.desc())
    return paginate(query, page, limit)
