# /app/services/cart_resolver.py

import json
import logging
from typing import Optional, Sequence, Dict, Any

from app.config import strings
from app.models.domain import Store, Conversation, Message, IntentResult, ChatMessage
from app.services import recovery_ledger
from app.services.ai_service import ai_service
from app.services.db_service import db_service
from app.services.message_builder import build_recovery_message_for_cart
from app.services.template_service import format_cart_summary

# Handles chat messages classified as abandoned_cart: finds the shopper's
# email, looks up their most recent saved cart and either summarises it or
# sends a checkout message with a discount.

logger = logging.getLogger(__name__)


def _metadata_email(metadata: Any) -> Optional[str]:
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except json.JSONDecodeError:
            return None
    if not isinstance(metadata, dict):
        return None
    custom_data = metadata.get("customData")
    if isinstance(custom_data, dict):
        return custom_data.get("email") or None
    return None


async def resolve_customer_email(
    conversation: Conversation,
    intent: IntentResult,
    messages: Sequence[Message],
) -> Optional[str]:
    """
    First non-empty of: the conversation's email, the email the classifier
    extracted, customData.email from any message's metadata, and the linked
    customer profile's email.
    """
    if conversation.customer_email:
        return conversation.customer_email
    if intent.customer_email:
        return intent.customer_email

    for message in messages:
        email = _metadata_email(message.metadata)
        if email:
            return email

    if conversation.customer_profile_id:
        profile = await db_service.get_customer_profile(conversation.customer_profile_id)
        if profile and profile.email:
            return profile.email

    return None


async def handle_abandoned_cart_intent(
    store: Store,
    conversation: Conversation,
    message: Message,
    intent: IntentResult,
    messages: Sequence[Message],
    chat_messages: Sequence[ChatMessage],
    bot_settings: Optional[Dict[str, Any]] = None,
) -> str:
    store_data = {"name": store.name}
    try:
        customer_email = await resolve_customer_email(conversation, intent, messages)
        if not customer_email:
            return strings.ASK_FOR_EMAIL

        carts = await db_service.get_abandoned_carts_by_customer_email(store.id, customer_email)
        if not carts:
            logger.info(f"No saved cart for {customer_email} in store {store.id}.")
            return await ai_service.generate_chat_response(chat_messages, store_data, bot_settings)

        cart = carts[0]
        if not intent.complete_purchase:
            return format_cart_summary(cart)

        recovery = await build_recovery_message_for_cart(
            cart,
            customer_name=conversation.customer_name,
            include_discount=True,
            template=strings.CHAT_CHECKOUT_TEMPLATE,
        )
        await recovery_ledger.record_attempt(
            cart.id,
            recovery.message,
            discount_code=recovery.discount_code,
            discount_amount=recovery.discount_amount,
            conversation_id=conversation.id,
            message_id=message.id,
        )
        return recovery.message
    except Exception as e:
        logger.error(f"Error handling abandoned cart for conversation {conversation.id}: {e}", exc_info=True)
        return await ai_service.generate_chat_response(chat_messages, store_data, bot_settings)
