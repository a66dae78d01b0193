"""Pytest fixtures: test client, test DB (in-memory SQLite), fake Razorpay gateway, bearer tokens."""
import os
import uuid

import pytest
from fastapi.testclient import TestClient

# In-memory SQLite and test credentials (must be set before app is imported)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test_key_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "test_webhook_secret")
os.environ.setdefault("ADMIN_SECRET", "test-admin-secret")
# High enough that the whole suite never hits 429
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

from sqlmodel import Session, SQLModel

from app.api.deps import get_gateway
from app.core.config import settings
from app.core.database import engine
from app.core.rate_limit import limiter
from app.core.security import create_access_token
from app.main import app
from app.models import Course
from app.services.errors import GatewayError
from app.services.gateway import RazorpayGateway, checkout_signature


class FakeGateway(RazorpayGateway):
    """Razorpay without the network: orders are made up locally, signature checks are the real ones."""

    def __init__(self):
        super().__init__()
        self.created: list[dict] = []
        self.fail = False

    def create_intent(self, amount_minor_units, currency, receipt, notes):
        if self.fail:
            raise GatewayError("Error while creating Razorpay order!")
        if len(receipt) > 40:
            # Razorpay rejects receipts longer than 40 characters
            raise GatewayError("Error while creating Razorpay order!")
        order = {
            "id": f"order_{uuid.uuid4().hex[:14]}",
            "entity": "order",
            "amount": amount_minor_units,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
            "status": "created",
        }
        self.created.append(order)
        return order


@pytest.fixture(autouse=True)
def _reset_db():
    """Fresh tables for every test; the in-memory DB lives as long as the engine."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    limiter.reset()
    yield


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture(scope="function")
def client(gateway):
    """TestClient with the fake gateway injected."""
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture
def course(db):
    """Catalog row for course_1 so grants also fill the roster."""
    row = Course(
        id="course_1",
        title="Python for Data Analysis",
        image="https://cdn.example.com/course_1.png",
        pricing=49.99,
        instructor_id="inst_1",
        instructor_name="Meera Iyer",
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def bearer(user_id: str = "user_1", role: str = "student", name: str = "Asha Rao", email: str = "asha@example.com") -> dict:
    token = create_access_token({"sub": user_id, "userName": name, "userEmail": email, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return bearer()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Secret": settings.admin_secret}


@pytest.fixture
def order_payload():
    """Create-order body for user_1 buying course_1; keyword overrides win."""

    def make(**overrides):
        body = {
            "userId": "user_1",
            "userName": "Asha Rao",
            "userEmail": "Asha@Example.com",
            "courseId": "course_1",
            "courseTitle": "Python for Data Analysis",
            "courseImage": "https://cdn.example.com/course_1.png",
            "coursePricing": 49.99,
            "instructorId": "inst_1",
            "instructorName": "Meera Iyer",
            "orderStatus": "pending",
            "paymentStatus": "initiated",
        }
        body.update(overrides)
        return body

    return make


@pytest.fixture
def sign():
    """Checkout signature as Razorpay would send it for (razorpay_order_id, payment_id)."""

    def make(razorpay_order_id: str, payment_id: str) -> str:
        return checkout_signature(settings.razorpay_key_secret, razorpay_order_id, payment_id)

    return make


@pytest.fixture
def headers_for():
    """Bearer headers for any user id / role."""
    return bearer
