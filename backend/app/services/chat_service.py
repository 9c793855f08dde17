# /app/services/chat_service.py

import logging
from typing import Optional, Dict, Any, List, Tuple

from app.config import strings
from app.models.domain import (
    Store, Conversation, Message, CustomerProfile, ChatMessage, ChatReply,
    Intent, IntentResult, ProductSummary, utc_now,
)
from app.services.ai_service import ai_service
from app.services.cart_resolver import handle_abandoned_cart_intent
from app.services.db_service import db_service
from app.services.storefront_service import StorefrontService
from app.utils.exceptions import NotFoundError
from app.utils.metrics import chat_messages_counter

# The per-message chat pipeline: store the inbound message, answer from the
# store's FAQs when one matches, otherwise classify intent and route to the
# cart, order, product or general AI handlers, then store the bot reply.

logger = logging.getLogger(__name__)

DEFAULT_INTENT_CONFIDENCE = 0.8
MAX_PRODUCTS = 3


async def _link_customer_profile(store_id: int, custom_data: Dict[str, Any]) -> Optional[CustomerProfile]:
    visitor_id = custom_data.get("visitorId")
    email = custom_data.get("email")
    if not visitor_id and not email:
        return None

    profile = None
    if visitor_id:
        profile = await db_service.get_customer_profile_by_visitor_id(store_id, visitor_id)
    if not profile and email:
        profile = await db_service.get_customer_profile_by_identifier(store_id, email)

    if profile:
        updates = {"last_seen": utc_now(), "conversation_count": profile.conversation_count + 1}
        if email and not profile.email:
            updates["email"] = email
        if visitor_id and not profile.visitor_id:
            updates["visitor_id"] = visitor_id
        if custom_data.get("name") and not profile.name:
            updates["name"] = custom_data["name"]
        return await db_service.update_customer_profile(profile.id, updates)

    return await db_service.create_customer_profile(CustomerProfile(
        store_id=store_id,
        identifier=email or visitor_id,
        email=email,
        name=custom_data.get("name"),
        visitor_id=visitor_id,
        conversation_count=1,
    ))


async def _start_conversation(store_id: int, custom_data: Dict[str, Any]) -> Conversation:
    profile = await _link_customer_profile(store_id, custom_data)
    conversation = await db_service.create_conversation(Conversation(
        store_id=store_id,
        customer_email=custom_data.get("email"),
        customer_name=custom_data.get("name"),
        visitor_id=custom_data.get("visitorId"),
        customer_profile_id=profile.id if profile else None,
    ))
    logger.info(f"Started conversation {conversation.id} for store {store_id}.")
    return conversation


def _to_chat_messages(messages: List[Message]) -> List[ChatMessage]:
    return [
        ChatMessage(role="user" if m.sender == "user" else "assistant", content=m.content)
        for m in messages
    ]


def _summarize_order(order: Dict[str, Any]) -> str:
    fulfillment_status = order.get("fulfillment_status")
    response = strings.ORDER_FOUND.format(
        order_number=order.get("order_number") or order.get("name", "").lstrip("#"),
        status=fulfillment_status or "processing",
    )
    if fulfillment_status == "shipped":
        response += strings.ORDER_SHIPPED
    elif fulfillment_status == "delivered":
        response += strings.ORDER_DELIVERED
    elif order.get("financial_status") == "refunded":
        response += strings.ORDER_REFUNDED
    else:
        response += strings.ORDER_PROCESSING
    return response


def _summarize_products(query: str, products: List[ProductSummary]) -> str:
    lines = []
    for product in products:
        line = f"**{product.title}**"
        if product.price:
            line += f" - ${product.price}"
        line += f" ({product.stock_status})"
        lines.append(line)
    return strings.PRODUCT_FOUND_HEADER.format(query=query) + "\n".join(lines) + "\n\n" + strings.PRODUCT_FOUND_FOOTER


async def _route_intent(
    store: Store,
    conversation: Conversation,
    message: Message,
    intent: IntentResult,
    history: List[Message],
    chat_messages: List[ChatMessage],
) -> Tuple[str, List[ProductSummary]]:
    store_data = {"name": store.name}
    bot_settings = store.bot_settings

    if intent.intent == Intent.ABANDONED_CART.value:
        reply = await handle_abandoned_cart_intent(
            store, conversation, message, intent, history, chat_messages, bot_settings
        )
        return reply, []

    storefront = StorefrontService.for_store(store)
    try:
        if intent.intent == Intent.ORDER_STATUS.value and intent.order_number:
            order = await storefront.get_order(intent.order_number)
            if order:
                return _summarize_order(order), []

        elif intent.intent == Intent.PRODUCT_INFO.value and intent.product_query:
            products = await storefront.search_products(intent.product_query, limit=MAX_PRODUCTS)
            if products:
                return _summarize_products(intent.product_query, products), products
    finally:
        await storefront.close()

    return await ai_service.generate_chat_response(chat_messages, store_data, bot_settings), []


async def process_message(
    store_id: int,
    conversation_id: Optional[int],
    content: str,
    sender: str = "user",
    custom_data: Optional[Dict[str, Any]] = None,
) -> ChatReply:
    custom_data = custom_data or {}

    store = await db_service.get_store(store_id)
    if not store:
        raise NotFoundError("Store", store_id)

    if conversation_id is None:
        conversation = await _start_conversation(store_id, custom_data)
    else:
        conversation = await db_service.get_conversation(conversation_id)
        if not conversation or conversation.store_id != store_id:
            raise NotFoundError("Conversation", conversation_id)

    message = await db_service.create_message(Message(
        conversation_id=conversation.id,
        content=content,
        sender=sender,
        metadata={"customData": custom_data} if custom_data else None,
    ))

    if sender != "user":
        chat_messages_counter.labels(sender=sender, intent="none").inc()
        return ChatReply(message=message, conversation_id=conversation.id)

    history = await db_service.get_messages_by_conversation(conversation.id)
    chat_messages = _to_chat_messages(history)
    products: List[ProductSummary] = []

    faqs = [faq for faq in await db_service.get_faqs_by_store(store.id) if faq.is_active]
    faq_match = await ai_service.match_faq(content, faqs, store_id=store.id)

    if faq_match.matched and faq_match.faq_index is not None:
        bot_response = faqs[faq_match.faq_index].answer
        intent_info = {"type": "faq", "confidence": faq_match.confidence}
    else:
        intent = await ai_service.classify_intent(chat_messages)
        bot_response, products = await _route_intent(store, conversation, message, intent, history, chat_messages)
        intent_info = {"type": intent.intent, "confidence": DEFAULT_INTENT_CONFIDENCE}

    chat_messages_counter.labels(sender=sender, intent=intent_info["type"]).inc()

    bot_message = await db_service.create_message(Message(
        conversation_id=conversation.id,
        content=bot_response,
        sender="bot",
        metadata={
            "intent": intent_info,
            "products": [p.model_dump() for p in products] or None,
        },
    ))

    return ChatReply(
        message=message,
        conversation_id=conversation.id,
        bot_response=bot_response,
        bot_message_id=bot_message.id,
        intent=intent_info,
        products=products,
    )


async def get_conversation_messages(conversation_id: int) -> List[Message]:
    conversation = await db_service.get_conversation(conversation_id)
    if not conversation:
        raise NotFoundError("Conversation", conversation_id)
    return await db_service.get_messages_by_conversation(conversation_id)
