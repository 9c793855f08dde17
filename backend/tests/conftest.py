
import os
import pytest
from datetime import timedelta
from fastapi.testclient import TestClient
from dotenv import load_dotenv

# Load environment variables FIRST, before any app imports, so Settings picks
# up the test configuration (in-process storage, no AI keys, no Redis).
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env.test"))

from app.main import app  # noqa: E402
from app.config import strings  # noqa: E402
from app.models.domain import (  # noqa: E402
    Store, AbandonedCart, AutomationSettings, RecoveryAttempt, utc_now,
)
from app.services.memory_store import InMemoryDatabaseService  # noqa: E402

# Every module that imported the global db_service instance by name.
DB_SERVICE_USERS = [
    "app.services.db_service",
    "app.services.message_builder",
    "app.services.recovery_ledger",
    "app.services.cart_resolver",
    "app.services.chat_service",
    "app.services.cart_recovery_service",
    "app.jobs.cart_recovery_job",
    "app.routes.faqs",
    "app.routes.public",
    "app.utils.lifecycle",
]


@pytest.fixture
def memory_db(mocker):
    """A fresh in-process store patched in wherever db_service is used."""
    db = InMemoryDatabaseService()
    for module in DB_SERVICE_USERS:
        mocker.patch(f"{module}.db_service", db)
    return db


@pytest.fixture
def now():
    return utc_now()


@pytest.fixture
def make_store(memory_db):
    async def _make(name="Acme Apparel", **overrides):
        return await memory_db.create_store(Store(name=name, **overrides))
    return _make


@pytest.fixture
def make_cart(memory_db):
    async def _make(store_id, external_checkout_id="chk_1", **overrides):
        data = {
            "customer_email": "jane@example.com",
            "customer_name": "Jane",
            "cart_items": [{"id": 1, "title": "Blue T-Shirt", "price": "29.99", "quantity": 1}],
            "checkout_url": "https://acme.example/checkout/1",
        }
        data.update(overrides)
        return await memory_db.save_abandoned_cart(
            AbandonedCart(store_id=store_id, external_checkout_id=external_checkout_id, **data)
        )
    return _make


@pytest.fixture
def make_settings(memory_db):
    async def _make(store_id, **overrides):
        data = {
            "is_enabled": True,
            "initial_template": strings.INITIAL_TEMPLATE,
            "follow_up_template": strings.FOLLOW_UP_TEMPLATE,
            "final_template": strings.FINAL_TEMPLATE,
        }
        data.update(overrides)
        return await memory_db.create_automation_settings(AutomationSettings(store_id=store_id, **data))
    return _make


@pytest.fixture
def make_attempt(memory_db):
    async def _make(cart_id, sent_hours_ago, status="sent", base=None):
        sent_at = (base or utc_now()) - timedelta(hours=sent_hours_ago)
        return await memory_db.create_recovery_attempt(RecoveryAttempt(
            cart_id=cart_id, message_content="earlier message", status=status,
            sent_at=sent_at, created_at=sent_at,
        ))
    return _make


@pytest.fixture(scope="function")
def test_client(memory_db):
    """
    Provides a TestClient for API integration tests, backed by a fresh
    in-process store. The app's lifespan is managed by the TestClient.
    """
    with TestClient(app) as client:
        yield client
