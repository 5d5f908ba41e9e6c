# app/core/config.py

from dataclasses import dataclass
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Core
    SECRET_KEY: str
    DATABASE_URL: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    ALGORITHM: str = "HS256"
    BCRYPT_ROUNDS: int = 12
    ENVIRONMENT: str = "development"
    PORT: int = 5000
    LOG_LEVEL: str = "INFO"

    # CORS (comma separated)
    ALLOWED_ORIGINS: str = "http://localhost:3000"
    DEV_ORIGIN_REGEX: str = r"https://.*\.vercel\.app"

    # Object storage
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_REGION: str = "ap-south-1"
    KYC_BUCKET_NAME: str = "rental-kyc-documents"
    PRODUCT_IMAGE_BUCKET_NAME: str = "rental-product-images"
    SIGNED_URL_EXPIRY_SECONDS: int = 3600
    KYC_MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10MB
    KYC_MAX_FILES: int = 5
    PRODUCT_MAX_IMAGES: int = 10
    PRODUCT_MAX_IMAGE_SIZE: int = 5 * 1024 * 1024  # 5MB
    allowed_image_types: str = "image/jpeg,image/png,image/webp,image/gif"

    # Email (Resend)
    RESEND_API_KEY: Optional[str] = None
    RESEND_API_URL: str = "https://api.resend.com/emails"
    EMAIL_FROM: str = "Rentals <noreply@example.com>"
    FRONTEND_BASE_URL: str = "http://localhost:3000"

    # Bank details encryption
    BANKING_ENCRYPTION_KEY: Optional[str] = None

    # Business rules
    TRY_ON_FEE: float = 50.0
    CART_EXPIRY_DAYS: int = 7
    LATE_FEE_RATE: float = 0.10
    NEW_USER_WINDOW_DAYS: int = 30
    REFERRAL_REWARD_AMOUNT: float = 100.0
    DEFAULT_COMMISSION_PERCENTAGE: float = 10.0

    # Notification outbox
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_MAX_ATTEMPTS: int = 5
    OUTBOX_POLL_SECONDS: int = 10

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


@dataclass(frozen=True)
class HttpPolicy:
    """Cross-origin and session delivery rules, resolved once at startup."""

    allow_origins: List[str]
    allow_origin_regex: Optional[str]
    allow_credentials: bool
    token_delivery: str  # bearer token returned in the JSON body


def resolve_http_policy(config: Settings) -> HttpPolicy:
    origins = [o.strip() for o in config.ALLOWED_ORIGINS.split(",") if o.strip()]
    regex = config.DEV_ORIGIN_REGEX if config.ENVIRONMENT == "development" else None
    return HttpPolicy(
        allow_origins=origins,
        allow_origin_regex=regex,
        allow_credentials=True,
        token_delivery="body",
    )


settings = Settings()
http_policy = resolve_http_policy(settings)
