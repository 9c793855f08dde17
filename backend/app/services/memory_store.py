# /app/services/memory_store.py

import logging
import itertools
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Any, TypeVar

from pydantic import BaseModel

from app.models.domain import (
    Store, AbandonedCart, RecoveryAttempt, AutomationSettings, CustomerProfile,
    Conversation, Message, Faq, FaqCategory, utc_now,
)
from app.utils.exceptions import DuplicateSettingsError

# In-process storage with the same async interface as DatabaseService.
# Each collection is a dict keyed by integer id with a monotonic counter.
# Used when no MongoDB URI is configured (local development, tests).

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _copy(model: Optional[ModelT]) -> Optional[ModelT]:
    return model.model_copy(deep=True) if model is not None else None


def _is_recent(cart: AbandonedCart, cutoff: datetime) -> bool:
    timestamps = (cart.abandoned_at, cart.updated_at, cart.created_at)
    return any(ts is not None and ts >= cutoff for ts in timestamps)


def _sort_key(created_at: Optional[datetime], entity_id: Optional[int]):
    return (created_at or datetime.min.replace(tzinfo=utc_now().tzinfo), entity_id or 0)


class InMemoryDatabaseService:
    def __init__(self):
        self.stores: Dict[int, Store] = {}
        self.abandoned_carts: Dict[int, AbandonedCart] = {}
        self.recovery_attempts: Dict[int, RecoveryAttempt] = {}
        self.automation_settings: Dict[int, AutomationSettings] = {}
        self.customer_profiles: Dict[int, CustomerProfile] = {}
        self.conversations: Dict[int, Conversation] = {}
        self.messages: Dict[int, Message] = {}
        self.faqs: Dict[int, Faq] = {}
        self.faq_categories: Dict[int, FaqCategory] = {}
        self._counters: Dict[str, Any] = {}

    def _next_id(self, collection: str) -> int:
        counter = self._counters.setdefault(collection, itertools.count(1))
        return next(counter)

    def _insert(self, collection: str, model: ModelT, **stamps) -> ModelT:
        new_id = self._next_id(collection)
        stored = model.model_copy(update={"id": new_id, **stamps}, deep=True)
        getattr(self, collection)[new_id] = stored
        return _copy(stored)

    def _update(self, collection: str, entity_id: int, data: Dict[str, Any]) -> Optional[ModelT]:
        table = getattr(self, collection)
        existing = table.get(entity_id)
        if existing is None:
            return None
        merged = existing.model_dump()
        merged.update({k: v for k, v in data.items() if k != "id"})
        updated = type(existing).model_validate(merged)
        table[entity_id] = updated
        return _copy(updated)

    # ==================== Lifecycle ====================

    async def create_indexes(self) -> None:
        logger.info("In-process storage active; no indexes to create.")

    async def health_check(self) -> bool:
        return True

    def close(self) -> None:
        pass

    # ==================== Stores ====================

    async def get_store(self, store_id: int) -> Optional[Store]:
        return _copy(self.stores.get(store_id))

    async def create_store(self, store: Store) -> Store:
        return self._insert("stores", store, created_at=utc_now())

    async def get_stores_with_automation(self) -> List[Store]:
        store_ids = {s.store_id for s in self.automation_settings.values() if s.is_enabled}
        return [_copy(store) for sid, store in sorted(self.stores.items()) if sid in store_ids]

    # ==================== Automation Settings ====================

    async def get_automation_settings(self, store_id: int) -> Optional[AutomationSettings]:
        for item in self.automation_settings.values():
            if item.store_id == store_id:
                return _copy(item)
        return None

    async def get_automation_settings_by_id(self, settings_id: int) -> Optional[AutomationSettings]:
        return _copy(self.automation_settings.get(settings_id))

    async def create_automation_settings(self, automation_settings: AutomationSettings) -> AutomationSettings:
        if await self.get_automation_settings(automation_settings.store_id):
            raise DuplicateSettingsError(automation_settings.store_id)
        now = utc_now()
        return self._insert("automation_settings", automation_settings, created_at=now, updated_at=now)

    async def update_automation_settings(self, settings_id: int, data: Dict[str, Any]) -> Optional[AutomationSettings]:
        data = {k: v for k, v in data.items() if k != "store_id"}
        return self._update("automation_settings", settings_id, {**data, "updated_at": utc_now()})

    # ==================== Abandoned Carts ====================

    async def get_abandoned_cart(self, cart_id: int) -> Optional[AbandonedCart]:
        return _copy(self.abandoned_carts.get(cart_id))

    async def save_abandoned_cart(self, cart: AbandonedCart) -> AbandonedCart:
        """Inserts the cart, or updates the row with the same (store_id, external_checkout_id)."""
        now = utc_now()
        for existing in self.abandoned_carts.values():
            if existing.store_id == cart.store_id and existing.external_checkout_id == cart.external_checkout_id:
                data = cart.model_dump(exclude={"id", "created_at"}, exclude_unset=True)
                return self._update("abandoned_carts", existing.id, {**data, "updated_at": now})
        return self._insert("abandoned_carts", cart, created_at=now, updated_at=now)

    async def get_abandoned_carts_by_store(self, store_id: int) -> List[AbandonedCart]:
        carts = [c for c in self.abandoned_carts.values() if c.store_id == store_id]
        carts.sort(key=lambda c: _sort_key(c.created_at, c.id), reverse=True)
        return [_copy(c) for c in carts]

    async def get_recent_abandoned_carts(self, store_id: int, hours: int, now: Optional[datetime] = None) -> List[AbandonedCart]:
        cutoff = (now or utc_now()) - timedelta(hours=hours)
        return [c for c in await self.get_abandoned_carts_by_store(store_id) if _is_recent(c, cutoff)]

    async def get_carts_for_automation(self, store_id: int, hours: int, now: Optional[datetime] = None) -> List[AbandonedCart]:
        carts = await self.get_recent_abandoned_carts(store_id, hours, now)
        return [c for c in carts if c.customer_email]

    async def get_abandoned_carts_by_customer_email(self, store_id: int, email: str) -> List[AbandonedCart]:
        return [c for c in await self.get_abandoned_carts_by_store(store_id) if c.customer_email == email]

    # ==================== Recovery Attempts ====================

    async def create_recovery_attempt(self, attempt: RecoveryAttempt) -> RecoveryAttempt:
        return self._insert("recovery_attempts", attempt, created_at=attempt.created_at or utc_now())

    async def get_recovery_attempt(self, attempt_id: int) -> Optional[RecoveryAttempt]:
        return _copy(self.recovery_attempts.get(attempt_id))

    async def update_recovery_attempt(self, attempt_id: int, data: Dict[str, Any]) -> Optional[RecoveryAttempt]:
        return self._update("recovery_attempts", attempt_id, data)

    async def get_recovery_attempts_by_cart(self, cart_id: int) -> List[RecoveryAttempt]:
        attempts = [a for a in self.recovery_attempts.values() if a.cart_id == cart_id]
        attempts.sort(key=lambda a: _sort_key(a.created_at, a.id))
        return [_copy(a) for a in attempts]

    async def get_recovery_attempts_by_store(
        self, store_id: int, cart_id: Optional[int] = None, status: Optional[str] = None
    ) -> List[RecoveryAttempt]:
        store_cart_ids = {c.id for c in self.abandoned_carts.values() if c.store_id == store_id}
        attempts = [a for a in self.recovery_attempts.values() if a.cart_id in store_cart_ids]
        if cart_id is not None:
            attempts = [a for a in attempts if a.cart_id == cart_id]
        if status:
            attempts = [a for a in attempts if a.status == status]
        attempts.sort(key=lambda a: _sort_key(a.created_at, a.id), reverse=True)
        return [_copy(a) for a in attempts]

    # ==================== Customer Profiles ====================

    async def get_customer_profile(self, profile_id: int) -> Optional[CustomerProfile]:
        return _copy(self.customer_profiles.get(profile_id))

    async def get_customer_profile_by_identifier(self, store_id: int, identifier: str) -> Optional[CustomerProfile]:
        for profile in self.customer_profiles.values():
            if profile.store_id == store_id and profile.identifier == identifier:
                return _copy(profile)
        return None

    async def get_customer_profile_by_visitor_id(self, store_id: int, visitor_id: str) -> Optional[CustomerProfile]:
        for profile in self.customer_profiles.values():
            if profile.store_id == store_id and profile.visitor_id == visitor_id:
                return _copy(profile)
        return None

    async def create_customer_profile(self, profile: CustomerProfile) -> CustomerProfile:
        return self._insert("customer_profiles", profile)

    async def update_customer_profile(self, profile_id: int, data: Dict[str, Any]) -> Optional[CustomerProfile]:
        return self._update("customer_profiles", profile_id, data)

    # ==================== Conversations & Messages ====================

    async def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        return _copy(self.conversations.get(conversation_id))

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        now = utc_now()
        return self._insert("conversations", conversation, created_at=now, updated_at=now)

    async def create_message(self, message: Message) -> Message:
        return self._insert("messages", message, created_at=utc_now())

    async def get_messages_by_conversation(self, conversation_id: int) -> List[Message]:
        messages = [m for m in self.messages.values() if m.conversation_id == conversation_id]
        messages.sort(key=lambda m: _sort_key(m.created_at, m.id))
        return [_copy(m) for m in messages]

    # ==================== FAQs ====================

    async def get_faqs_by_store(self, store_id: int) -> List[Faq]:
        faqs = [f for f in self.faqs.values() if f.store_id == store_id]
        faqs.sort(key=lambda f: (f.sort_order, f.id))
        return [_copy(f) for f in faqs]

    async def get_faq(self, faq_id: int) -> Optional[Faq]:
        return _copy(self.faqs.get(faq_id))

    async def create_faq(self, faq: Faq) -> Faq:
        now = utc_now()
        return self._insert("faqs", faq, created_at=now, updated_at=now)

    async def update_faq(self, faq_id: int, data: Dict[str, Any]) -> Optional[Faq]:
        return self._update("faqs", faq_id, {**data, "updated_at": utc_now()})

    async def delete_faq(self, faq_id: int) -> bool:
        return self.faqs.pop(faq_id, None) is not None

    async def get_faq_categories_by_store(self, store_id: int) -> List[FaqCategory]:
        categories = [c for c in self.faq_categories.values() if c.store_id == store_id]
        categories.sort(key=lambda c: (c.sort_order, c.id))
        return [_copy(c) for c in categories]

    async def get_faq_category(self, category_id: int) -> Optional[FaqCategory]:
        return _copy(self.faq_categories.get(category_id))

    async def create_faq_category(self, category: FaqCategory) -> FaqCategory:
        return self._insert("faq_categories", category, created_at=utc_now())

    async def update_faq_category(self, category_id: int, data: Dict[str, Any]) -> Optional[FaqCategory]:
        return self._update("faq_categories", category_id, data)

    async def delete_faq_category(self, category_id: int) -> bool:
        return self.faq_categories.pop(category_id, None) is not None

    # ==================== Demo Data ====================

    async def seed_demo_data(self) -> Store:
        """Creates a demo store with a few FAQs so a fresh development server is usable."""
        store = await self.create_store(Store(name="Demo Store", domain="demo-store.myshopify.com"))
        shipping = await self.create_faq_category(FaqCategory(store_id=store.id, name="Shipping", sort_order=0))
        returns = await self.create_faq_category(FaqCategory(store_id=store.id, name="Returns", sort_order=1))
        demo_faqs = [
            (shipping.id, "What are your shipping options?", "We offer standard and expedited shipping options."),
            (shipping.id, "How do I track my order?",
             "You can track your order by logging into your account and viewing your order history, "
             "or by using the tracking number sent in your shipping confirmation email."),
            (returns.id, "What is your return policy?",
             "We accept returns within 30 days of purchase. Items must be in original condition with tags attached."),
        ]
        for sort_order, (category_id, question, answer) in enumerate(demo_faqs):
            await self.create_faq(Faq(
                store_id=store.id, category_id=category_id, question=question, answer=answer, sort_order=sort_order
            ))
        logger.info(f"Seeded demo store {store.id} with {len(demo_faqs)} FAQs.")
        return store
