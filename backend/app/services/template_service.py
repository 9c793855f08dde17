# /app/services/template_service.py

import logging
from typing import Optional, Iterable

from app.config import strings
from app.models.domain import AbandonedCart, CartItem, DiscountType

# Formatting for cart recovery messages. Two styles share the same item and
# price helpers: template rendering for outbound recovery messages, and the
# chat cart summary shown when a shopper asks about their cart.

logger = logging.getLogger(__name__)

PLACEHOLDER_CUSTOMER_NAME = "{{customer_name}}"
PLACEHOLDER_STORE_NAME = "{{store_name}}"
PLACEHOLDER_CART_ITEMS = "{{cart_items}}"
PLACEHOLDER_CHECKOUT_URL = "{{checkout_url}}"
PLACEHOLDER_DISCOUNT_CODE = "{{discount_code}}"

PLACEHOLDERS = (
    PLACEHOLDER_CUSTOMER_NAME,
    PLACEHOLDER_STORE_NAME,
    PLACEHOLDER_CART_ITEMS,
    PLACEHOLDER_CHECKOUT_URL,
    PLACEHOLDER_DISCOUNT_CODE,
)


def format_price(amount: float) -> str:
    return f"${amount:.2f}"


def format_cart_items(items: Iterable[CartItem]) -> str:
    """Formats items as '{quantity}x {title} - {price}', one per line."""
    lines = [f"{item.quantity}x {item.title} - {item.price}" for item in items]
    if not lines:
        return strings.NO_CART_ITEMS
    return "\n".join(lines)


def format_discount_text(
    discount_code: Optional[str],
    discount_amount: Optional[str],
    discount_type: Optional[str],
) -> str:
    if not (discount_code and discount_amount and discount_type):
        return ""
    if discount_type == DiscountType.PERCENTAGE.value:
        return f"Use discount code {discount_code} for {discount_amount}% off your order!"
    return f"Use discount code {discount_code} for ${discount_amount} off your order!"


def render_template(
    template: str,
    cart: AbandonedCart,
    store_name: Optional[str],
    discount_code: Optional[str] = None,
    discount_amount: Optional[str] = None,
    discount_type: Optional[str] = None,
    customer_name: Optional[str] = None,
) -> str:
    """
    Fills a recovery message template. Every placeholder is substituted; the
    discount placeholder collapses to an empty string unless a complete
    code/amount/type triple is supplied.
    """
    if isinstance(discount_type, DiscountType):
        discount_type = discount_type.value

    replacements = {
        PLACEHOLDER_CUSTOMER_NAME: customer_name or cart.customer_name or "Customer",
        PLACEHOLDER_STORE_NAME: store_name or "Store",
        PLACEHOLDER_CART_ITEMS: format_cart_items(cart.cart_items),
        PLACEHOLDER_CHECKOUT_URL: cart.checkout_url or "#",
        PLACEHOLDER_DISCOUNT_CODE: format_discount_text(discount_code, discount_amount, discount_type),
    }

    message = template
    for placeholder, value in replacements.items():
        message = message.replace(placeholder, value)
    return message


def format_cart_summary(cart: AbandonedCart) -> str:
    """Renders the chat reply listing a shopper's saved cart."""
    items = cart.cart_items
    item_count = len(items)
    item_text = "item" if item_count == 1 else "items"

    items_list = ""
    if item_count > 0:
        items_list = "\n\n**Your Cart Details:**\n"
        total_value = 0.0
        for index, item in enumerate(items, start=1):
            subtotal = item.subtotal
            total_value += subtotal

            items_list += f"**{index}. {item.title}**\n"
            items_list += f"   • Quantity: {item.quantity}\n"
            items_list += f"   • Price: {format_price(item.unit_price)}\n"
            items_list += f"   • Subtotal: {format_price(subtotal)}\n"
            if item.image:
                items_list += f"   • [View Product]({item.image})\n"
            items_list += "\n"

        if total_value > 0:
            items_list += f"**Cart Total: {format_price(total_value)}**\n"

        if cart.checkout_url:
            items_list += f"\n[Click here to complete your purchase]({cart.checkout_url})\n"

    return (
        f"I found your shopping cart! You have {item_count} {item_text} waiting for you."
        f"{items_list}\n\n{strings.CART_SUMMARY_FOOTER}"
    )
