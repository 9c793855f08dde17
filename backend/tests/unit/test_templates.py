# backend/tests/unit/test_templates.py
import json
import pytest

from app.config import strings
from app.models.domain import AbandonedCart
from app.services.template_service import (
    render_template, format_cart_items, format_discount_text, format_cart_summary, PLACEHOLDERS,
)


def _cart(**overrides):
    data = {
        "store_id": 1,
        "external_checkout_id": "chk_1",
        "cart_items": [{"title": "Blue T-Shirt", "price": "29.99", "quantity": 1}],
        "checkout_url": "https://x/c",
    }
    data.update(overrides)
    return AbandonedCart(**data)


def test_initial_template_end_to_end():
    """The default initial template greets the customer and lists items and the checkout link."""
    message = render_template(strings.DEFAULT_TEMPLATES["initial"], _cart(), "Demo Store", customer_name="John")

    assert "Hello John" in message
    assert "1x Blue T-Shirt - 29.99" in message
    assert "https://x/c" in message
    assert "Demo Store" in message
    assert "{{" not in message


@pytest.mark.parametrize("template_name", ["initial", "follow_up", "final"])
def test_all_placeholders_substituted_without_discount(template_name):
    message = render_template(strings.DEFAULT_TEMPLATES[template_name], _cart(), "Demo Store")
    assert "{{" not in message
    assert "discount code" not in message.lower()


def test_every_placeholder_is_substituted_in_a_custom_template():
    template = " | ".join(PLACEHOLDERS)
    message = render_template(template, _cart(customer_name="Ann"), "Shop", "COMEBACKABCDE", "15", "percentage")
    assert "{{" not in message
    assert message.startswith("Ann | Shop | 1x Blue T-Shirt - 29.99 | https://x/c | ")


def test_fallbacks_for_missing_values():
    cart = _cart(customer_name=None, checkout_url=None)
    message = render_template("{{customer_name}}/{{store_name}}/{{checkout_url}}", cart, None)
    assert message == "Customer/Store/#"


def test_customer_name_argument_overrides_cart_name():
    message = render_template("Hi {{customer_name}}", _cart(customer_name="Jane"), "Shop", customer_name="John")
    assert message == "Hi John"


def test_empty_cart_renders_placeholder_text():
    assert format_cart_items([]) == "No items in cart"
    message = render_template("{{cart_items}}", _cart(cart_items=[]), "Shop")
    assert message == strings.NO_CART_ITEMS


def test_multiple_items_are_one_per_line():
    cart = _cart(cart_items=[
        {"title": "Blue T-Shirt", "price": "29.99", "quantity": 2},
        {"title": "Cap", "price": "12.00"},
    ])
    assert format_cart_items(cart.cart_items) == "2x Blue T-Shirt - 29.99\n1x Cap - 12.00"


def test_discount_text_percentage_and_fixed():
    assert format_discount_text("COMEBACKAAAAA", "10", "percentage") == \
        "Use discount code COMEBACKAAAAA for 10% off your order!"
    assert format_discount_text("COMEBACKAAAAA", "5", "fixed") == \
        "Use discount code COMEBACKAAAAA for $5 off your order!"


@pytest.mark.parametrize("code,amount,discount_type", [
    (None, "10", "percentage"),
    ("COMEBACKAAAAA", None, "percentage"),
    ("COMEBACKAAAAA", "10", None),
])
def test_incomplete_discount_collapses_to_empty(code, amount, discount_type):
    assert format_discount_text(code, amount, discount_type) == ""
    message = render_template("[{{discount_code}}]", _cart(), "Shop", code, amount, discount_type)
    assert message == "[]"


def test_cart_item_shapes_render_identically():
    """A list, a JSON string and a bare object describing the same item render the same way."""
    item = {"title": "Blue T-Shirt", "price": "29.99", "quantity": 1}
    as_list = _cart(cart_items=[item])
    as_string = _cart(cart_items=json.dumps([item]))
    as_object = _cart(cart_items=item)

    rendered = {
        render_template(strings.INITIAL_TEMPLATE, cart, "Shop", customer_name="John")
        for cart in (as_list, as_string, as_object)
    }
    assert len(rendered) == 1


def test_cart_summary_lists_items_totals_and_checkout():
    cart = _cart(cart_items=[
        {"title": "Blue T-Shirt", "price": "29.99", "quantity": 2, "image": "https://img/1.png"},
        {"title": "Cap", "price": "$10", "quantity": 1},
    ])
    summary = format_cart_summary(cart)

    assert summary.startswith("I found your shopping cart! You have 2 items waiting for you.")
    assert "**1. Blue T-Shirt**" in summary
    assert "   • Quantity: 2" in summary
    assert "   • Price: $29.99" in summary
    assert "   • Subtotal: $59.98" in summary
    assert "[View Product](https://img/1.png)" in summary
    assert "   • Price: $10.00" in summary
    assert "**Cart Total: $69.98**" in summary
    assert "[Click here to complete your purchase](https://x/c)" in summary
    assert summary.endswith(strings.CART_SUMMARY_FOOTER)


def test_cart_summary_for_single_and_empty_carts():
    assert "You have 1 item waiting" in format_cart_summary(_cart())
    empty = format_cart_summary(_cart(cart_items=[]))
    assert "You have 0 items waiting" in empty
    assert "Cart Total" not in empty
