from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.crud import cart as crud_cart
from app.db.deps import get_current_user, get_db, get_storage_service
from app.models.user import User
from app.schemas.cart import AvailabilityOut, CartAdd, CartOut, CartUpdate, InCartStatus
from app.schemas.common import MessageResponse
from app.services.storage_service import StorageService

router = APIRouter()


@router.get("/", response_model=CartOut)
def get_cart(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage_service),
):
    return crud_cart.get_cart(db, user, storage)


@router.post("/", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def add_to_cart(data: CartAdd, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    crud_cart.add_to_cart(db, user, data)
    return {"message": "Added to cart"}


@router.put("/{item_id}", response_model=MessageResponse)
def update_cart_item(
    item_id: int,
    data: CartUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    crud_cart.update_cart_item(db, user, item_id, data)
    return {"message": "Cart updated"}


@router.delete("/product/{product_id}", response_model=MessageResponse)
def remove_from_cart(product_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    crud_cart.remove_from_cart(db, user, product_id)
    return {"message": "Removed from cart"}


@router.delete("/", response_model=MessageResponse)
def clear_cart(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    removed = crud_cart.clear_cart(db, user)
    return {"message": f"Removed {removed} item(s)"}


@router.get("/status/{product_id}", response_model=InCartStatus)
def cart_status(product_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return crud_cart.cart_status(db, user, product_id)


@router.get("/availability/{product_id}", response_model=AvailabilityOut)
def check_availability(
    product_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db),
):
    available, reason = crud_cart.check_product_availability(db, product_id, start_date, end_date)
    return {"product_id": product_id, "available": available, "reason": reason}
