# /app/config/strings.py

# This file contains all user-facing strings and message templates, making them
# easy to manage and update without changing application logic.

# --- Cart Recovery Templates ---
# Placeholders: {{customer_name}}, {{store_name}}, {{cart_items}}, {{checkout_url}}, {{discount_code}}

INITIAL_TEMPLATE = (
    "Hello {{customer_name}},\n\n"
    "We noticed you left some items in your shopping cart. Your cart is saved and ready for you "
    "to complete your purchase.\n\n"
    "{{cart_items}}\n\n"
    "Click here to complete your purchase: {{checkout_url}}\n\n"
    "If you have any questions, feel free to reply to this email.\n\n"
    "Thank you,\n"
    "{{store_name}} Team"
)

FOLLOW_UP_TEMPLATE = (
    "Hello {{customer_name}},\n\n"
    "Just a friendly reminder that your shopping cart is still waiting for you.\n\n"
    "{{cart_items}}\n\n"
    "We're here to help if you have any questions about your items.\n\n"
    "Click here to complete your purchase: {{checkout_url}}\n\n"
    "Thank you,\n"
    "{{store_name}} Team"
)

FINAL_TEMPLATE = (
    "Hello {{customer_name}},\n\n"
    "This is your last chance to complete your purchase. We've saved your cart, but we can't hold "
    "the items forever.\n\n"
    "{{cart_items}}\n\n"
    "{{discount_code}}\n\n"
    "Click here to complete your purchase: {{checkout_url}}\n\n"
    "Thank you,\n"
    "{{store_name}} Team"
)

DEFAULT_TEMPLATES = {
    "initial": INITIAL_TEMPLATE,
    "follow_up": FOLLOW_UP_TEMPLATE,
    "final": FINAL_TEMPLATE,
}

# Used when a shopper asks the chatbot to complete their purchase.
CHAT_CHECKOUT_TEMPLATE = (
    "Hello {{customer_name}},\n\n"
    "I've found your shopping cart with the following items:\n\n"
    "{{cart_items}}\n\n"
    "**Ready to complete your purchase?**\n"
    "[Click here to checkout now]({{checkout_url}})\n\n"
    "{{discount_code}}\n\n"
    "If you have any questions about these products or need help with your order, just let me know!\n\n"
    "Thank you,\n"
    "{{store_name}} Team"
)

NO_CART_ITEMS = "No items in cart"

# --- Notification subjects ---
RECOVERY_SUBJECT = "Your cart is waiting for you at {store_name}"
RECOVERY_FINAL_SUBJECT = "Last chance to complete your purchase!"

# --- Chatbot Responses ---
ASK_FOR_EMAIL = (
    "I'd be happy to help you complete your purchase. Could you please provide your email "
    "address so I can find your cart?"
)

CART_SUMMARY_FOOTER = (
    "Would you like to complete your purchase? I can help you with that or answer any "
    "questions about the items in your cart."
)

AI_FALLBACK_RESPONSE = "I'm experiencing technical difficulties. Please try again later."
AI_EMPTY_RESPONSE = "I'm unable to generate a response at the moment. Please try again."

ORDER_FOUND = "I found your order #{order_number}. It's currently {status}."
ORDER_SHIPPED = " Your order has been shipped and is on its way to you."
ORDER_DELIVERED = " Your order has been delivered."
ORDER_REFUNDED = " This order has been refunded."
ORDER_PROCESSING = " It's still being processed and will be shipped soon."

PRODUCT_FOUND_HEADER = 'Here is what I found for "{query}":\n\n'
PRODUCT_FOUND_FOOTER = "Would you like to know more about any of these products?"
