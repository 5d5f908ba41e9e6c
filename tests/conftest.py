import os

# Settings are read at import time, so the environment must be ready first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENVIRONMENT"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["BANKING_ENCRYPTION_KEY"] = "A" * 43 + "="
os.environ["RESEND_API_KEY"] = ""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app.core.security import create_access_token, hash_password
from app.db.deps import get_email_service, get_storage_service
from app.db.session import Base, SessionLocal, engine
from app.main import app
from app.models.order import Order
from app.models.product import Product
from app.models.user import User
from app.services.email_service import EmailDeliveryError, EmailService
from app.services.storage_service import StorageService
from app.utils.timeutils import today

PASSWORD = "Str0ng!pass"


class FakeStorage(StorageService):
    """In-memory object store keyed by (bucket, key)."""

    def __init__(self):
        super().__init__(client=object())
        self.objects = {}

    def presigned_upload_url(self, bucket, key, content_type, expiration=None):
        return f"https://{bucket}.storage.test/{key}?op=put"

    def presigned_download_url(self, bucket, key, expiration=None):
        return f"https://{bucket}.storage.test/{key}"

    def object_size(self, bucket, key):
        body = self.objects.get((bucket, key))
        return None if body is None else len(body)

    def put_object(self, bucket, key, body, content_type):
        self.objects[(bucket, key)] = body
        return key

    def delete_object(self, bucket, key):
        self.objects.pop((bucket, key), None)


class FakeEmail(EmailService):
    def __init__(self):
        super().__init__(api_key="test-key", sender="Rentals <test@example.com>")
        self.sent = []
        self.fail = False

    def send_email(self, to, subject, body):
        if self.fail:
            raise EmailDeliveryError("provider unavailable")
        self.sent.append({"to": to, "subject": subject, "body": body})
        return True


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(schema):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def email():
    return FakeEmail()


@pytest.fixture
def client(storage, email):
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_email_service] = lambda: email
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="buyer", **fields):
        counter["n"] += 1
        user = User(
            email=fields.pop("email", f"{role}{counter['n']}@example.com"),
            password_hash=hash_password(PASSWORD),
            full_name=fields.pop("full_name", f"{role.title()} {counter['n']}"),
            role=role,
            addresses=[],
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token({"sub": str(user.id), "role": user.role})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def make_product(db):
    def _make(seller, **fields):
        values = {
            "title": "Velvet Sherwani",
            "category": "formal_wear",
            "rental_price_per_day": 100.0,
            "security_deposit_percentage": 20.0,
            "image_keys": [],
        }
        values.update(fields)
        product = Product(seller_id=seller.id, **values)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_order(db):
    """Insert an order row directly, bypassing checkout."""

    def _make(buyer, product, start=None, days=10, **fields):
        start = start or today() + timedelta(days=1)
        end = start + timedelta(days=days)
        rent = product.rental_price_per_day * days
        values = {
            "buyer_id": buyer.id,
            "seller_id": product.seller_id,
            "product_id": product.id,
            "rental_start_date": start,
            "rental_end_date": end,
            "rental_duration_days": days,
            "expected_return_date": end,
            "total_rental_price": rent,
            "security_deposit": 200.0,
            "total_amount": rent + 200.0,
            "commission_amount": rent * 0.1,
        }
        values.update(fields)
        order = Order(**values)
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make
