# /app/services/db_service.py

import logging
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument, DESCENDING, ASCENDING
from pymongo.errors import DuplicateKeyError
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Dict, Any, Type, TypeVar

from pydantic import BaseModel

from app.config.settings import settings
from app.models.domain import (
    Store, AbandonedCart, RecoveryAttempt, AutomationSettings, CustomerProfile,
    Conversation, Message, Faq, FaqCategory,
)
from app.utils.circuit_breaker import CircuitBreaker
from app.utils.exceptions import DuplicateSettingsError
from app.utils.metrics import database_operations_counter
from app.services.memory_store import InMemoryDatabaseService

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Documents are addressed by an integer "id" drawn from the counters
# collection; Mongo's own _id is never exposed.
NO_MONGO_ID = {"_id": 0}


class DatabaseService:
    """
    Manages all interactions with MongoDB: stores, carts, recovery attempts,
    automation settings, customer profiles, conversations and FAQs.
    """

    def __init__(self, mongo_uri: str):
        try:
            self.client = AsyncIOMotorClient(
                mongo_uri,
                maxPoolSize=settings.max_pool_size,
                minPoolSize=settings.min_pool_size,
                tz_aware=True,
                tzinfo=timezone.utc,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000
            )
            self.db = self.client[settings.mongo_db_name]
            self.circuit_breaker = CircuitBreaker("database")
            logger.info("MongoDB client initialized successfully.")
        except Exception as e:
            logger.error(f"Error initializing MongoDB client: {e}")
            raise

    # ==================== Helper Methods ====================

    async def _db_operation(self, name: str, operation) -> Any:
        """
        Runs a database operation through the circuit breaker and records the
        outcome. Failures are logged and re-raised to the caller.
        """
        try:
            result = await self.circuit_breaker.call(operation)
        except DuplicateKeyError:
            database_operations_counter.labels(operation=name, status="duplicate").inc()
            raise
        except Exception as e:
            logger.exception(f"Database operation '{name}' failed: {type(e).__name__}")
            database_operations_counter.labels(operation=name, status="failed").inc()
            raise
        database_operations_counter.labels(operation=name, status="success").inc()
        return result

    def _now_utc(self) -> datetime:
        return datetime.now(timezone.utc)

    async def _next_id(self, collection: str) -> int:
        counter = await self.db.counters.find_one_and_update(
            {"_id": collection},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return counter["seq"]

    async def _insert(self, collection: str, model: ModelT, **stamps) -> ModelT:
        async def operation():
            new_id = await self._next_id(collection)
            document = model.model_copy(update={"id": new_id, **stamps}).model_dump(mode="python")
            await self.db[collection].insert_one(document)
            document.pop("_id", None)
            return type(model).model_validate(document)

        return await self._db_operation(f"insert_{collection}", operation)

    async def _find_one(self, collection: str, query: Dict[str, Any], model: Type[ModelT]) -> Optional[ModelT]:
        document = await self._db_operation(
            f"find_{collection}",
            lambda: self.db[collection].find_one(query, NO_MONGO_ID)
        )
        return model.model_validate(document) if document else None

    async def _find_many(
        self, collection: str, query: Dict[str, Any], model: Type[ModelT], sort: List[tuple]
    ) -> List[ModelT]:
        documents = await self._db_operation(
            f"find_{collection}",
            lambda: self.db[collection].find(query, NO_MONGO_ID).sort(sort).to_list(length=None)
        )
        return [model.model_validate(doc) for doc in documents]

    async def _update(
        self, collection: str, entity_id: int, data: Dict[str, Any], model: Type[ModelT]
    ) -> Optional[ModelT]:
        data = {k: v for k, v in data.items() if k != "id"}
        document = await self._db_operation(
            f"update_{collection}",
            lambda: self.db[collection].find_one_and_update(
                {"id": entity_id},
                {"$set": data},
                projection=NO_MONGO_ID,
                return_document=ReturnDocument.AFTER,
            )
        )
        return model.model_validate(document) if document else None

    async def _delete(self, collection: str, entity_id: int) -> bool:
        result = await self._db_operation(
            f"delete_{collection}",
            lambda: self.db[collection].delete_one({"id": entity_id})
        )
        return result.deleted_count > 0

    # ==================== Index Management ====================

    async def create_indexes(self) -> None:
        """Create all necessary database indexes on startup."""
        indexes = [
            ("stores", [("id", 1)], {"unique": True}),
            ("abandoned_carts", [("id", 1)], {"unique": True}),
            ("abandoned_carts", [("store_id", 1), ("external_checkout_id", 1)], {"unique": True}),
            ("abandoned_carts", [("store_id", 1), ("customer_email", 1), ("created_at", -1)], {}),
            ("abandoned_carts", [("store_id", 1), ("updated_at", -1)], {}),
            ("recovery_attempts", [("id", 1)], {"unique": True}),
            ("recovery_attempts", [("cart_id", 1), ("created_at", 1)], {}),
            ("automation_settings", [("id", 1)], {"unique": True}),
            ("automation_settings", [("store_id", 1)], {"unique": True}),
            ("customer_profiles", [("id", 1)], {"unique": True}),
            ("customer_profiles", [("store_id", 1), ("identifier", 1)], {"unique": True}),
            ("customer_profiles", [("store_id", 1), ("visitor_id", 1)], {}),
            ("conversations", [("id", 1)], {"unique": True}),
            ("messages", [("id", 1)], {"unique": True}),
            ("messages", [("conversation_id", 1), ("created_at", 1)], {}),
            ("faqs", [("id", 1)], {"unique": True}),
            ("faqs", [("store_id", 1), ("sort_order", 1)], {}),
            ("faq_categories", [("id", 1)], {"unique": True}),
        ]

        for collection, keys, options in indexes:
            try:
                await self.db[collection].create_index(keys, **options)
                logger.debug(f"Created index on {collection}: {keys}")
            except Exception as e:
                logger.error(f"Failed to create index on {collection} {keys}: {e}")

        logger.info("Database indexes created successfully.")

    async def health_check(self) -> bool:
        try:
            await self.client.admin.command('ping')
            return True
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return False

    def close(self) -> None:
        self.client.close()

    # ==================== Stores ====================

    async def get_store(self, store_id: int) -> Optional[Store]:
        return await self._find_one("stores", {"id": store_id}, Store)

    async def create_store(self, store: Store) -> Store:
        return await self._insert("stores", store, created_at=self._now_utc())

    async def get_stores_with_automation(self) -> List[Store]:
        """Stores whose automation settings are enabled."""
        enabled = await self._find_many(
            "automation_settings", {"is_enabled": True}, AutomationSettings, [("store_id", ASCENDING)]
        )
        store_ids = [s.store_id for s in enabled]
        if not store_ids:
            return []
        return await self._find_many("stores", {"id": {"$in": store_ids}}, Store, [("id", ASCENDING)])

    # ==================== Automation Settings ====================

    async def get_automation_settings(self, store_id: int) -> Optional[AutomationSettings]:
        return await self._find_one("automation_settings", {"store_id": store_id}, AutomationSettings)

    async def get_automation_settings_by_id(self, settings_id: int) -> Optional[AutomationSettings]:
        return await self._find_one("automation_settings", {"id": settings_id}, AutomationSettings)

    async def create_automation_settings(self, automation_settings: AutomationSettings) -> AutomationSettings:
        now = self._now_utc()
        try:
            return await self._insert("automation_settings", automation_settings, created_at=now, updated_at=now)
        except DuplicateKeyError:
            raise DuplicateSettingsError(automation_settings.store_id)

    async def update_automation_settings(self, settings_id: int, data: Dict[str, Any]) -> Optional[AutomationSettings]:
        data = {k: v for k, v in data.items() if k != "store_id"}
        data["updated_at"] = self._now_utc()
        return await self._update("automation_settings", settings_id, data, AutomationSettings)

    # ==================== Abandoned Carts ====================

    async def get_abandoned_cart(self, cart_id: int) -> Optional[AbandonedCart]:
        return await self._find_one("abandoned_carts", {"id": cart_id}, AbandonedCart)

    async def save_abandoned_cart(self, cart: AbandonedCart) -> AbandonedCart:
        """Inserts the cart, or updates the row with the same (store_id, external_checkout_id)."""
        existing = await self._find_one(
            "abandoned_carts",
            {"store_id": cart.store_id, "external_checkout_id": cart.external_checkout_id},
            AbandonedCart,
        )
        now = self._now_utc()
        if existing:
            data = cart.model_dump(exclude={"id", "created_at"}, exclude_unset=True)
            data["updated_at"] = now
            return await self._update("abandoned_carts", existing.id, data, AbandonedCart)
        return await self._insert("abandoned_carts", cart, created_at=now, updated_at=now)

    async def get_abandoned_carts_by_store(self, store_id: int) -> List[AbandonedCart]:
        return await self._find_many(
            "abandoned_carts", {"store_id": store_id}, AbandonedCart,
            [("created_at", DESCENDING), ("id", DESCENDING)]
        )

    async def get_recent_abandoned_carts(self, store_id: int, hours: int, now: Optional[datetime] = None) -> List[AbandonedCart]:
        cutoff = (now or self._now_utc()) - timedelta(hours=hours)
        query = {
            "store_id": store_id,
            "$or": [
                {"abandoned_at": {"$gte": cutoff}},
                {"updated_at": {"$gte": cutoff}},
                {"created_at": {"$gte": cutoff}},
            ],
        }
        return await self._find_many(
            "abandoned_carts", query, AbandonedCart, [("created_at", DESCENDING), ("id", DESCENDING)]
        )

    async def get_carts_for_automation(self, store_id: int, hours: int, now: Optional[datetime] = None) -> List[AbandonedCart]:
        carts = await self.get_recent_abandoned_carts(store_id, hours, now)
        return [c for c in carts if c.customer_email]

    async def get_abandoned_carts_by_customer_email(self, store_id: int, email: str) -> List[AbandonedCart]:
        return await self._find_many(
            "abandoned_carts", {"store_id": store_id, "customer_email": email}, AbandonedCart,
            [("created_at", DESCENDING), ("id", DESCENDING)]
        )

    # ==================== Recovery Attempts ====================

    async def create_recovery_attempt(self, attempt: RecoveryAttempt) -> RecoveryAttempt:
        return await self._insert("recovery_attempts", attempt, created_at=attempt.created_at or self._now_utc())

    async def get_recovery_attempt(self, attempt_id: int) -> Optional[RecoveryAttempt]:
        return await self._find_one("recovery_attempts", {"id": attempt_id}, RecoveryAttempt)

    async def update_recovery_attempt(self, attempt_id: int, data: Dict[str, Any]) -> Optional[RecoveryAttempt]:
        return await self._update("recovery_attempts", attempt_id, data, RecoveryAttempt)

    async def get_recovery_attempts_by_cart(self, cart_id: int) -> List[RecoveryAttempt]:
        return await self._find_many(
            "recovery_attempts", {"cart_id": cart_id}, RecoveryAttempt,
            [("created_at", ASCENDING), ("id", ASCENDING)]
        )

    async def get_recovery_attempts_by_store(
        self, store_id: int, cart_id: Optional[int] = None, status: Optional[str] = None
    ) -> List[RecoveryAttempt]:
        carts = await self._db_operation(
            "find_abandoned_carts",
            lambda: self.db.abandoned_carts.find({"store_id": store_id}, {"id": 1, "_id": 0}).to_list(length=None)
        )
        cart_ids = [c["id"] for c in carts]
        if cart_id is not None:
            cart_ids = [cid for cid in cart_ids if cid == cart_id]

        query: Dict[str, Any] = {"cart_id": {"$in": cart_ids}}
        if status:
            query["status"] = status
        return await self._find_many(
            "recovery_attempts", query, RecoveryAttempt, [("created_at", DESCENDING), ("id", DESCENDING)]
        )

    # ==================== Customer Profiles ====================

    async def get_customer_profile(self, profile_id: int) -> Optional[CustomerProfile]:
        return await self._find_one("customer_profiles", {"id": profile_id}, CustomerProfile)

    async def get_customer_profile_by_identifier(self, store_id: int, identifier: str) -> Optional[CustomerProfile]:
        return await self._find_one(
            "customer_profiles", {"store_id": store_id, "identifier": identifier}, CustomerProfile
        )

    async def get_customer_profile_by_visitor_id(self, store_id: int, visitor_id: str) -> Optional[CustomerProfile]:
        return await self._find_one(
            "customer_profiles", {"store_id": store_id, "visitor_id": visitor_id}, CustomerProfile
        )

    async def create_customer_profile(self, profile: CustomerProfile) -> CustomerProfile:
        return await self._insert("customer_profiles", profile)

    async def update_customer_profile(self, profile_id: int, data: Dict[str, Any]) -> Optional[CustomerProfile]:
        return await self._update("customer_profiles", profile_id, data, CustomerProfile)

    # ==================== Conversations & Messages ====================

    async def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        return await self._find_one("conversations", {"id": conversation_id}, Conversation)

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        now = self._now_utc()
        return await self._insert("conversations", conversation, created_at=now, updated_at=now)

    async def create_message(self, message: Message) -> Message:
        return await self._insert("messages", message, created_at=self._now_utc())

    async def get_messages_by_conversation(self, conversation_id: int) -> List[Message]:
        return await self._find_many(
            "messages", {"conversation_id": conversation_id}, Message,
            [("created_at", ASCENDING), ("id", ASCENDING)]
        )

    # ==================== FAQs ====================

    async def get_faqs_by_store(self, store_id: int) -> List[Faq]:
        return await self._find_many(
            "faqs", {"store_id": store_id}, Faq, [("sort_order", ASCENDING), ("id", ASCENDING)]
        )

    async def get_faq(self, faq_id: int) -> Optional[Faq]:
        return await self._find_one("faqs", {"id": faq_id}, Faq)

    async def create_faq(self, faq: Faq) -> Faq:
        now = self._now_utc()
        return await self._insert("faqs", faq, created_at=now, updated_at=now)

    async def update_faq(self, faq_id: int, data: Dict[str, Any]) -> Optional[Faq]:
        return await self._update("faqs", faq_id, {**data, "updated_at": self._now_utc()}, Faq)

    async def delete_faq(self, faq_id: int) -> bool:
        return await self._delete("faqs", faq_id)

    async def get_faq_categories_by_store(self, store_id: int) -> List[FaqCategory]:
        return await self._find_many(
            "faq_categories", {"store_id": store_id}, FaqCategory, [("sort_order", ASCENDING), ("id", ASCENDING)]
        )

    async def get_faq_category(self, category_id: int) -> Optional[FaqCategory]:
        return await self._find_one("faq_categories", {"id": category_id}, FaqCategory)

    async def create_faq_category(self, category: FaqCategory) -> FaqCategory:
        return await self._insert("faq_categories", category, created_at=self._now_utc())

    async def update_faq_category(self, category_id: int, data: Dict[str, Any]) -> Optional[FaqCategory]:
        return await self._update("faq_categories", category_id, data, FaqCategory)

    async def delete_faq_category(self, category_id: int) -> bool:
        return await self._delete("faq_categories", category_id)


def create_db_service():
    if settings.mongo_uri:
        return DatabaseService(settings.mongo_uri)
    logger.warning("MONGO_URI is not set; using in-process storage. Data will not survive a restart.")
    return InMemoryDatabaseService()


# Globally accessible instance
db_service = create_db_service()
