import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.crud import product as crud_product
from app.db.deps import get_current_seller, get_current_user, get_db, get_storage_service
from app.models.user import User
from app.schemas.common import MessageResponse
from app.schemas.product import ProductAvailabilityUpdate, ProductFields, ProductOut, ProductPage
from app.services.image_service import upload_product_images
from app.services.storage_service import StorageService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_images(images: Optional[List[UploadFile]]) -> list:
    files = []
    for img in images or []:
        if not img.filename:
            continue
        content = await img.read()
        if content:
            files.append((img.filename, img.content_type, content))
    return files


def _fields(**values) -> ProductFields:
    try:
        return ProductFields(**values)
    except SchemaValidationError as e:
        raise ValidationError("; ".join(err["msg"] for err in e.errors())) from e


@router.post("/", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
async def create_product(
    title: str = Form(...),
    category: str = Form(...),
    rental_price_per_day: float = Form(...),
    description: Optional[str] = Form(None),
    size: Optional[str] = Form(None),
    security_deposit_percentage: float = Form(0),
    try_on_available: bool = Form(False),
    images: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    seller: User = Depends(get_current_seller),
    storage: StorageService = Depends(get_storage_service),
):
    fields = _fields(
        title=title,
        description=description,
        category=category,
        size=size,
        rental_price_per_day=rental_price_per_day,
        security_deposit_percentage=security_deposit_percentage,
        try_on_available=try_on_available,
    )
    keys = upload_product_images(storage, seller.id, await _read_images(images))
    product = crud_product.create_product(db, seller, fields, keys)
    return crud_product.product_view(product, storage)


@router.get("/", response_model=ProductPage)
def list_products(
    category: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    size: Optional[str] = None,
    availability: Optional[str] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    sort: str = "newest",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    result = crud_product.list_products(
        db, page, limit,
        category=category, min_price=min_price, max_price=max_price, size=size,
        availability=availability, featured=featured, search=search, sort=sort,
    )
    return crud_product.page_view(result, storage)


@router.get("/search", response_model=ProductPage)
def search_products(
    q: str = Query(""),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    return crud_product.page_view(crud_product.search_products(db, q, page, limit), storage)


@router.get("/featured", response_model=ProductPage)
def featured_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    return crud_product.page_view(crud_product.featured_products(db, page, limit), storage)


@router.get("/category/{category}", response_model=ProductPage)
def products_by_category(
    category: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    return crud_product.page_view(crud_product.products_by_category(db, category, page, limit), storage)


@router.get("/mine", response_model=ProductPage)
def my_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    seller: User = Depends(get_current_seller),
    storage: StorageService = Depends(get_storage_service),
):
    return crud_product.page_view(crud_product.seller_products(db, seller.id, page, limit), storage)


@router.get("/seller/{seller_id}", response_model=ProductPage)
def seller_products(
    seller_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    return crud_product.page_view(crud_product.seller_products(db, seller_id, page, limit), storage)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    return crud_product.product_view(crud_product.get_product(db, product_id), storage)


@router.put("/{product_id}", response_model=ProductOut)
async def update_product(
    product_id: int,
    title: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    rental_price_per_day: Optional[float] = Form(None),
    description: Optional[str] = Form(None),
    size: Optional[str] = Form(None),
    security_deposit_percentage: Optional[float] = Form(None),
    try_on_available: Optional[bool] = Form(None),
    keep_image_keys: Optional[str] = Form(None),
    images: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage_service),
):
    """Partial update. ``keep_image_keys`` is a JSON list of existing keys to retain."""
    product = crud_product.get_owned_product(db, product_id, user)
    merged = {
        "title": title if title is not None else product.title,
        "description": description if description is not None else product.description,
        "category": category if category is not None else product.category,
        "size": size if size is not None else product.size,
        "rental_price_per_day": rental_price_per_day if rental_price_per_day is not None
        else product.rental_price_per_day,
        "security_deposit_percentage": security_deposit_percentage if security_deposit_percentage is not None
        else product.security_deposit_percentage,
        "try_on_available": try_on_available if try_on_available is not None else product.try_on_available,
    }
    fields = _fields(**merged)

    keep = None
    if keep_image_keys is not None:
        try:
            keep = json.loads(keep_image_keys)
        except json.JSONDecodeError as e:
            raise ValidationError("keep_image_keys must be a JSON list") from e
        if not isinstance(keep, list):
            raise ValidationError("keep_image_keys must be a JSON list")

    files = await _read_images(images)
    new_keys = upload_product_images(storage, product.seller_id, files) if files else None
    product = crud_product.update_product(db, product, fields.model_dump(), new_keys, keep)
    return crud_product.product_view(product, storage)


@router.put("/{product_id}/availability", response_model=ProductOut)
def update_availability(
    product_id: int,
    data: ProductAvailabilityUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage_service),
):
    product = crud_product.get_owned_product(db, product_id, user)
    product = crud_product.update_product(db, product, {"availability_status": data.availability_status})
    return crud_product.product_view(product, storage)


@router.delete("/{product_id}", response_model=MessageResponse)
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage_service),
):
    product = crud_product.get_owned_product(db, product_id, user)
    crud_product.delete_product(db, product, storage)
    return {"message": "Product deleted"}
