from fastapi.openapi.utils import get_openapi

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import models  # noqa: F401  registers every table on Base.metadata
from app.core.config import http_policy, settings
from app.core.exceptions import register_exception_handlers
from app.core.logging import configure_logging
from app.db.session import engine, Base
from app.api.routes_auth import router as auth_router
from app.api.routes_profile import router as profile_router
from app.api.routes_products import router as product_router
from app.api.routes_cart import router as cart_router
from app.api.routes_wishlist import router as wishlist_router
from app.api.routes_orders import router as order_router
from app.api.routes_seller_orders import router as seller_order_router
from app.api.routes_delivery import router as delivery_router
from app.api.routes_reviews import router as review_router
from app.api.routes_promo import router as promo_router
from app.api.routes_kyc import router as kyc_router
from app.api.routes_notifications import router as notification_router
from app.api.routes_admin import router as admin_router
from app.api.routes_admin_dashboard import router as admin_dashboard_router

configure_logging()

app = FastAPI(
    title="rental-marketplace-api",
    description="Costume, jewelry and formal wear rentals: orders, delivery, KYC and payouts",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=http_policy.allow_origins,
    allow_origin_regex=http_policy.allow_origin_regex,
    allow_credentials=http_policy.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

Base.metadata.create_all(bind=engine)

# Register endpoints
app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(profile_router, prefix="/api/profile", tags=["Profile"])
app.include_router(product_router, prefix="/api/products", tags=["Product"])
app.include_router(cart_router, prefix="/api/cart", tags=["Cart"])
app.include_router(wishlist_router, prefix="/api/wishlist", tags=["Wishlist"])
app.include_router(order_router, prefix="/api/orders", tags=["Order"])
app.include_router(seller_order_router, prefix="/api/seller-orders", tags=["Seller Orders"])
app.include_router(delivery_router, prefix="/api/delivery", tags=["Delivery"])
app.include_router(review_router, prefix="/api/reviews", tags=["Review"])
app.include_router(promo_router, prefix="/api", tags=["Promo & Referral"])
app.include_router(kyc_router, prefix="/api/kyc", tags=["KYC"])
app.include_router(notification_router, prefix="/api/notifications", tags=["Notification"])
app.include_router(admin_router, prefix="/api/admin", tags=["Admin"])
app.include_router(admin_dashboard_router, prefix="/api/admin/dashboard", tags=["Admin Dashboard"])


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok", "environment": settings.ENVIRONMENT}


PUBLIC_PATHS = {"/auth/signup", "/auth/signin", "/health"}


# Custom OpenAPI with Bearer Auth
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title="Rental Marketplace API",
        version="1.0.0",
        description="API for buyers, sellers, delivery partners and admins of the rental marketplace.",
        routes=app.routes,
    )

    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT"
        }
    }
    for route_path, path in openapi_schema["paths"].items():
        if route_path in PUBLIC_PATHS:
            continue
        for method in path.values():
            method["security"] = [{"BearerAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi
