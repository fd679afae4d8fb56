"""HTTP-level fixtures: the FastAPI app wired to the test doubles."""

from fastapi.testclient import TestClient
import pytest

from app.api.dependencies import (
    get_current_user_id,
    get_db,
    get_notification_dispatcher,
    get_payment_gateway,
    get_rate_provider,
)
from app.main import app
from support import STUDENT_ID


class CurrentUser:
    """Mutable stand-in for the auth middleware."""

    def __init__(self, user_id):
        self.user_id = user_id

    def __call__(self) -> str:
        return self.user_id


@pytest.fixture
def current_user() -> CurrentUser:
    return CurrentUser(STUDENT_ID)


@pytest.fixture
def client(db, rate_provider, payment_gateway, dispatcher, current_user):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_rate_provider] = lambda: rate_provider
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_current_user_id] = current_user
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
