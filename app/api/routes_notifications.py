from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.crud import notification as crud_notification
from app.db.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.common import MessageResponse
from app.schemas.notification import NotificationOut, NotificationPage

router = APIRouter()


@router.get("/", response_model=NotificationPage)
def list_notifications(
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return crud_notification.list_notifications(db, user, page, limit, unread_only)


@router.put("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return crud_notification.mark_read(db, user, notification_id)


@router.put("/read-all", response_model=MessageResponse)
def mark_all_read(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    count = crud_notification.mark_all_read(db, user)
    return {"message": f"Marked {count} notification(s) as read"}
