# backend/tests/unit/test_message_builder.py
import pytest

from app.config import strings
from app.models.domain import AbandonedCart, AutomationSettings
from app.services.message_builder import build_recovery_message, build_recovery_message_for_cart


@pytest.fixture
def cart():
    return AbandonedCart(
        store_id=1,
        external_checkout_id="chk_1",
        customer_name="Jane",
        cart_items=[{"title": "Blue T-Shirt", "price": "29.99", "quantity": 1}],
        checkout_url="https://x/c",
    )


def _automation_settings(**overrides):
    data = {
        "store_id": 1,
        "initial_template": strings.INITIAL_TEMPLATE,
        "follow_up_template": strings.FOLLOW_UP_TEMPLATE,
        "final_template": strings.FINAL_TEMPLATE,
    }
    data.update(overrides)
    return AutomationSettings(**data)


def test_no_discount_returns_none_code_and_amount(cart):
    result = build_recovery_message(cart, "John", False)

    assert result.discount_code is None
    assert result.discount_amount is None
    assert "Hello John" in result.message
    assert "discount code" not in result.message.lower()


def test_default_template_is_initial_without_discount(cart):
    result = build_recovery_message(cart)
    assert "We noticed you left some items" in result.message
    assert "Hello Jane" in result.message


def test_discount_uses_final_template_and_default_amount(cart):
    result = build_recovery_message(cart, include_discount=True, store_name="Demo Store")

    assert result.discount_code.startswith("COMEBACK")
    assert result.discount_amount == "10"
    assert "This is your last chance" in result.message
    assert f"Use discount code {result.discount_code} for 10% off your order!" in result.message
    assert "{{" not in result.message


def test_discount_uses_store_settings(cart):
    automation_settings = _automation_settings(discount_amount="5", discount_type="fixed")
    result = build_recovery_message(cart, include_discount=True, automation_settings=automation_settings)

    assert result.discount_amount == "5"
    assert f"Use discount code {result.discount_code} for $5 off your order!" in result.message


def test_explicit_template_is_used(cart):
    result = build_recovery_message(cart, include_discount=True, template="{{customer_name}}: {{discount_code}}")
    assert result.message == f"Jane: Use discount code {result.discount_code} for 10% off your order!"


@pytest.mark.asyncio
async def test_async_wrapper_looks_up_store_and_settings(memory_db, make_store, make_cart, make_settings):
    store = await make_store(name="Acme Apparel")
    saved_cart = await make_cart(store.id)
    await make_settings(store.id, discount_amount="20")

    result = await build_recovery_message_for_cart(
        saved_cart, include_discount=True, template=strings.CHAT_CHECKOUT_TEMPLATE
    )

    assert "Acme Apparel Team" in result.message
    assert result.discount_amount == "20"
    assert "for 20% off" in result.message
    assert "[Click here to checkout now](https://acme.example/checkout/1)" in result.message
