from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.crud import wishlist as crud_wishlist
from app.db.deps import get_current_user, get_db, get_storage_service
from app.models.user import User
from app.schemas.cart import WishlistAdd, WishlistPage, WishlistStatus
from app.schemas.common import MessageResponse
from app.services.storage_service import StorageService

router = APIRouter()


@router.get("/", response_model=WishlistPage)
def list_wishlist(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage_service),
):
    return crud_wishlist.list_wishlist(db, user, page, limit, storage)


@router.post("/", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def add_to_wishlist(data: WishlistAdd, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    crud_wishlist.add_to_wishlist(db, user, data.product_id)
    return {"message": "Added to wishlist"}


@router.delete("/{product_id}", response_model=MessageResponse)
def remove_from_wishlist(product_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    crud_wishlist.remove_from_wishlist(db, user, product_id)
    return {"message": "Removed from wishlist"}


@router.get("/status/{product_id}", response_model=WishlistStatus)
def wishlist_status(product_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return crud_wishlist.wishlist_status(db, user, product_id)
