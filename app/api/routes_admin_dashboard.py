from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.crud import dashboard as crud_dashboard
from app.db.deps import get_current_admin, get_db
from app.models.user import User
from app.schemas.admin import DashboardOverview, OrderAnalytics, ProductAnalytics, RevenueAnalytics

router = APIRouter()

TIMEFRAME = Query("30d", pattern="^(7d|30d|90d|1y)$")


@router.get("/overview", response_model=DashboardOverview)
def overview(timeframe: str = TIMEFRAME, db: Session = Depends(get_db), admin: User = Depends(get_current_admin)):
    return crud_dashboard.overview(db, timeframe)


@router.get("/orders", response_model=OrderAnalytics)
def order_analytics(timeframe: str = TIMEFRAME, db: Session = Depends(get_db),
                    admin: User = Depends(get_current_admin)):
    return crud_dashboard.order_analytics(db, timeframe)


@router.get("/revenue", response_model=RevenueAnalytics)
def revenue_analytics(timeframe: str = TIMEFRAME, db: Session = Depends(get_db),
                      admin: User = Depends(get_current_admin)):
    return crud_dashboard.revenue_analytics(db, timeframe)


@router.get("/products", response_model=ProductAnalytics)
def product_analytics(
    timeframe: str = TIMEFRAME,
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return crud_dashboard.product_analytics(db, timeframe, limit)
