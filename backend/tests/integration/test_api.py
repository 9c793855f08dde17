# backend/tests/integration/test_api.py
import re
import asyncio
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock

from app.models.domain import FaqMatch, IntentResult, Store, AbandonedCart, utc_now
from app.services.ai_service import ai_service

API = "/api/v1"


@pytest.fixture
def store(memory_db):
    return asyncio.run(memory_db.create_store(Store(name="Acme Apparel")))


@pytest.fixture
def cart(memory_db, store):
    return asyncio.run(memory_db.save_abandoned_cart(AbandonedCart(
        store_id=store.id,
        external_checkout_id="chk_1",
        customer_email="jane@example.com",
        customer_name="Jane",
        cart_items=[{"title": "Blue T-Shirt", "price": "29.99", "quantity": 1}],
        checkout_url="https://acme.example/checkout/1",
    )))


@pytest.fixture
def quiet_ai(mocker):
    mocker.patch.object(ai_service, "match_faq", new_callable=AsyncMock, return_value=FaqMatch(matched=False))
    mocker.patch.object(ai_service, "classify_intent", new_callable=AsyncMock, return_value=IntentResult())
    mocker.patch.object(ai_service, "generate_chat_response", new_callable=AsyncMock, return_value="Hi! How can I help?")


# --- Public ---

def test_root_and_health(test_client):
    assert test_client.get("/").json()["status"] == "operational"

    response = test_client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["services"]["database"] == "connected"
    assert body["services"]["cache"] == "disabled"


def test_metrics_endpoint(test_client):
    test_client.get("/health")
    response = test_client.get("/metrics")
    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]
    assert "response_time_seconds" in response.text


# --- Automation settings ---

def test_automation_settings_lifecycle(test_client, store):
    response = test_client.post(f"{API}/cart-recovery/automation-settings", json={"store_id": store.id, "is_enabled": True})
    assert response.status_code == 201
    created = response.json()["data"]["settings"]
    assert created["initial_delay"] == 1
    assert created["follow_up_delay"] == 24
    assert created["final_delay"] == 48
    assert created["discount_amount"] == "10"
    assert created["discount_type"] == "percentage"
    assert "{{customer_name}}" in created["initial_template"]

    duplicate = test_client.post(f"{API}/cart-recovery/automation-settings", json={"store_id": store.id})
    assert duplicate.status_code == 409

    patched = test_client.patch(
        f"{API}/cart-recovery/automation-settings/{created['id']}",
        json={"follow_up_delay": 12, "discount_type": "fixed"},
    )
    assert patched.status_code == 200
    assert patched.json()["data"]["settings"]["follow_up_delay"] == 12
    assert patched.json()["data"]["settings"]["discount_type"] == "fixed"

    fetched = test_client.get(f"{API}/cart-recovery/automation-settings/{store.id}")
    assert fetched.json()["data"]["settings"]["follow_up_delay"] == 12


@pytest.mark.parametrize("payload", [
    {"initial_delay": 0},
    {"final_delay": 73},
    {"discount_amount": "ten"},
    {"discount_type": "bogo"},
    {"initial_template": ""},
])
def test_automation_settings_validation(test_client, store, payload):
    response = test_client.post(f"{API}/cart-recovery/automation-settings", json={"store_id": store.id, **payload})
    assert response.status_code == 422


def test_missing_settings_and_store_are_404(test_client, store):
    assert test_client.get(f"{API}/cart-recovery/automation-settings/{store.id}").status_code == 404
    assert test_client.post(f"{API}/cart-recovery/automation-settings", json={"store_id": 999}).status_code == 404
    assert test_client.patch(f"{API}/cart-recovery/automation-settings/999", json={}).status_code == 404


@pytest.mark.parametrize("payload", [
    {"is_enabled": None},
    {"initial_template": None},
    {"discount_amount": None},
    {"follow_up_delay": 12, "discount_type": None},
])
def test_automation_settings_update_rejects_nulls(test_client, memory_db, store, payload):
    created = test_client.post(f"{API}/cart-recovery/automation-settings", json={"store_id": store.id, "is_enabled": True})
    settings_id = created.json()["data"]["settings"]["id"]

    response = test_client.patch(f"{API}/cart-recovery/automation-settings/{settings_id}", json=payload)

    assert response.status_code == 422
    fetched = test_client.get(f"{API}/cart-recovery/automation-settings/{store.id}").json()["data"]["settings"]
    assert fetched["is_enabled"] is True
    assert fetched["follow_up_delay"] == 24
    assert [s.id for s in asyncio.run(memory_db.get_stores_with_automation())] == [store.id]


# --- Carts ---

def test_simulate_then_list_carts(test_client, store):
    response = test_client.post(f"{API}/cart-recovery/simulate/{store.id}", json={"count": 3})
    assert response.status_code == 201
    simulated = response.json()["data"]["carts"]
    assert len(simulated) == 3
    for index, item in enumerate(simulated):
        assert re.fullmatch(rf"sim_\d+_{index}", item["external_checkout_id"])
        assert item["customer_email"] == f"customer{index}@example.com"
        assert 20 <= item["total_price"] <= 219
        assert 1 <= item["cart_items"][0]["quantity"] <= 3
        assert re.fullmatch(r"\$\d+\.99", item["cart_items"][0]["price"])

    listed = test_client.get(f"{API}/cart-recovery/abandoned-carts/{store.id}", params={"hours": 24})
    assert len(listed.json()["data"]["carts"]) == 3

    synced = test_client.post(f"{API}/cart-recovery/sync/{store.id}")
    assert len(synced.json()["data"]["carts"]) == 3


def test_simulate_defaults_to_one_and_validates_count(test_client, store):
    response = test_client.post(f"{API}/cart-recovery/simulate/{store.id}")
    assert response.status_code == 201
    assert len(response.json()["data"]["carts"]) == 1
    assert test_client.post(f"{API}/cart-recovery/simulate/{store.id}", json={"count": 51}).status_code == 422
    assert test_client.post(f"{API}/cart-recovery/simulate/999").status_code == 404


# --- Recovery messages and attempts ---

def test_manual_message_and_status_updates(test_client, store, cart):
    response = test_client.post(f"{API}/cart-recovery/send-message/{cart.id}", json={"include_discount": True})
    assert response.status_code == 201
    attempt = response.json()["data"]["attempt"]
    assert attempt["status"] == "sent"
    assert re.fullmatch(r"COMEBACK[A-Z2-9]{5}", attempt["discount_code"])
    assert attempt["discount_code"] in attempt["message_content"]

    clicked = test_client.patch(f"{API}/cart-recovery/attempts/{attempt['id']}/status", json={"status": "clicked"})
    assert clicked.status_code == 200
    assert clicked.json()["data"]["attempt"]["status"] == "clicked"

    backwards = test_client.patch(f"{API}/cart-recovery/attempts/{attempt['id']}/status", json={"status": "sent"})
    assert backwards.status_code == 409

    converted = test_client.patch(f"{API}/cart-recovery/attempts/{attempt['id']}/status", json={"status": "converted"})
    assert converted.json()["data"]["attempt"]["converted_at"] is not None

    listed = test_client.get(f"{API}/cart-recovery/attempts/{store.id}", params={"status": "converted"})
    assert [a["id"] for a in listed.json()["data"]["attempts"]] == [attempt["id"]]
    assert test_client.get(f"{API}/cart-recovery/attempts/{store.id}", params={"status": "sent"}).json()["data"]["attempts"] == []


def test_manual_message_without_discount(test_client, cart):
    response = test_client.post(f"{API}/cart-recovery/send-message/{cart.id}")
    attempt = response.json()["data"]["attempt"]
    assert attempt["discount_code"] is None
    assert "Hello Jane" in attempt["message_content"]


def test_attempt_errors(test_client):
    assert test_client.post(f"{API}/cart-recovery/send-message/999").status_code == 404
    assert test_client.patch(f"{API}/cart-recovery/attempts/999/status", json={"status": "clicked"}).status_code == 404
    assert test_client.patch(f"{API}/cart-recovery/attempts/1/status", json={"status": "opened"}).status_code == 422


def test_run_automation_now(test_client, memory_db, store, cart):
    test_client.post(f"{API}/cart-recovery/automation-settings", json={"store_id": store.id, "is_enabled": True, "initial_delay": 1})
    asyncio.run(memory_db.save_abandoned_cart(AbandonedCart(
        store_id=store.id, external_checkout_id=cart.external_checkout_id,
        abandoned_at=utc_now() - timedelta(hours=2),
    )))

    response = test_client.post(f"{API}/cart-recovery/run")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["success"] is True
    assert data["messages_sent"] == 1


def test_run_automation_failure_is_500(test_client, mocker):
    mocker.patch(
        "app.jobs.cart_recovery_job.db_service.get_stores_with_automation",
        new_callable=AsyncMock, side_effect=RuntimeError("database offline"),
    )
    mocker.patch("app.jobs.cart_recovery_job.alerting_service.send_critical_alert", new_callable=AsyncMock)

    response = test_client.post(f"{API}/cart-recovery/run")

    assert response.status_code == 500
    assert "database offline" in response.json()["detail"]


# --- Conversations ---

def test_chat_round_trip(test_client, store, quiet_ai):
    response = test_client.post(
        f"{API}/conversations/new/messages",
        json={"store_id": store.id, "content": "Hello", "custom_data": {"visitorId": "v-1"}},
    )
    assert response.status_code == 201
    reply = response.json()
    assert reply["bot_response"] == "Hi! How can I help?"
    assert reply["intent"]["type"] == "general_question"
    conversation_id = reply["conversation_id"]

    follow_up = test_client.post(
        f"{API}/conversations/{conversation_id}/messages", json={"store_id": store.id, "content": "Thanks"}
    )
    assert follow_up.status_code == 201

    history = test_client.get(f"{API}/conversations/{conversation_id}/messages").json()["data"]["messages"]
    assert [m["sender"] for m in history] == ["user", "bot", "user", "bot"]


def test_chat_errors(test_client, store, quiet_ai):
    assert test_client.post(f"{API}/conversations/abc/messages", json={"store_id": store.id, "content": "Hi"}).status_code == 422
    assert test_client.post(f"{API}/conversations/new/messages", json={"store_id": 999, "content": "Hi"}).status_code == 404
    assert test_client.post(f"{API}/conversations/new/messages", json={"store_id": store.id, "content": ""}).status_code == 422
    assert test_client.get(f"{API}/conversations/999/messages").status_code == 404


# --- FAQ manager ---

def test_faq_crud(test_client, store):
    category = test_client.post(f"{API}/faq-categories", json={"store_id": store.id, "name": "Shipping"})
    assert category.status_code == 201
    category_id = category.json()["data"]["category"]["id"]

    created = test_client.post(f"{API}/faqs", json={
        "store_id": store.id, "category_id": category_id,
        "question": "How long is shipping?", "answer": "3-5 business days.",
    })
    assert created.status_code == 201
    faq_id = created.json()["data"]["faq"]["id"]

    updated = test_client.patch(f"{API}/faqs/{faq_id}", json={"is_active": False})
    assert updated.json()["data"]["faq"]["is_active"] is False

    faqs = test_client.get(f"{API}/faqs", params={"store_id": store.id}).json()["data"]["faqs"]
    assert [f["id"] for f in faqs] == [faq_id]
    categories = test_client.get(f"{API}/faq-categories", params={"store_id": store.id}).json()["data"]["categories"]
    assert [c["name"] for c in categories] == ["Shipping"]

    assert test_client.delete(f"{API}/faqs/{faq_id}").status_code == 200
    assert test_client.delete(f"{API}/faqs/{faq_id}").status_code == 404
    assert test_client.delete(f"{API}/faq-categories/{category_id}").status_code == 200
    assert test_client.get(f"{API}/faqs").status_code == 422
    assert test_client.post(f"{API}/faqs", json={"store_id": 999, "question": "Q", "answer": "A"}).status_code == 404


def test_faq_updates_reject_nulls_but_allow_clearing_optional_fields(test_client, store):
    category_id = test_client.post(
        f"{API}/faq-categories", json={"store_id": store.id, "name": "Shipping", "description": "Delivery times"}
    ).json()["data"]["category"]["id"]
    faq_id = test_client.post(f"{API}/faqs", json={
        "store_id": store.id, "category_id": category_id,
        "question": "How long is shipping?", "answer": "3-5 business days.",
    }).json()["data"]["faq"]["id"]

    assert test_client.patch(f"{API}/faqs/{faq_id}", json={"answer": None}).status_code == 422
    assert test_client.patch(f"{API}/faqs/{faq_id}", json={"is_active": None}).status_code == 422
    assert test_client.patch(f"{API}/faq-categories/{category_id}", json={"name": None}).status_code == 422

    uncategorized = test_client.patch(f"{API}/faqs/{faq_id}", json={"category_id": None})
    assert uncategorized.status_code == 200
    assert uncategorized.json()["data"]["faq"]["category_id"] is None
    assert uncategorized.json()["data"]["faq"]["answer"] == "3-5 business days."

    cleared = test_client.patch(f"{API}/faq-categories/{category_id}", json={"description": None})
    assert cleared.status_code == 200
    assert cleared.json()["data"]["category"]["description"] is None
    assert cleared.json()["data"]["category"]["name"] == "Shipping"
