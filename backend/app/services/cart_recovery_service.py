# /app/services/cart_recovery_service.py

import random
import logging
from datetime import datetime
from typing import List, Dict, Any

from app.config import strings
from app.config.settings import settings
from app.models.domain import AbandonedCart, AutomationSettings, CartItem, RecoveryAttempt, RecoveryStage, utc_now
from app.services import recovery_ledger
from app.services.db_service import db_service
from app.services.message_builder import build_recovery_message
from app.services.notification_service import send_recovery_notification
from app.utils.exceptions import NotFoundError
from app.utils.metrics import recovery_messages_counter

# Dashboard-facing cart recovery operations: automation settings, listing and
# syncing carts, manual recovery messages and test data.

logger = logging.getLogger(__name__)


# --- Automation Settings ---

async def get_automation_settings(store_id: int) -> AutomationSettings:
    automation_settings = await db_service.get_automation_settings(store_id)
    if not automation_settings:
        raise NotFoundError("AutomationSettings", store_id)
    return automation_settings


async def create_automation_settings(data: Dict[str, Any]) -> AutomationSettings:
    """Creates the store's settings; raises DuplicateSettingsError if it already has them."""
    if not await db_service.get_store(data["store_id"]):
        raise NotFoundError("Store", data["store_id"])

    payload = {k: v for k, v in data.items() if v is not None}
    payload.setdefault("initial_template", strings.DEFAULT_TEMPLATES["initial"])
    payload.setdefault("follow_up_template", strings.DEFAULT_TEMPLATES["follow_up"])
    payload.setdefault("final_template", strings.DEFAULT_TEMPLATES["final"])
    payload.setdefault("discount_amount", settings.default_discount_amount)
    payload.setdefault("discount_type", settings.default_discount_type)

    created = await db_service.create_automation_settings(AutomationSettings(**payload))
    logger.info(f"Created automation settings {created.id} for store {created.store_id}.")
    return created


async def update_automation_settings(settings_id: int, data: Dict[str, Any]) -> AutomationSettings:
    updated = await db_service.update_automation_settings(settings_id, data)
    if not updated:
        raise NotFoundError("AutomationSettings", settings_id)
    logger.info(f"Updated automation settings {settings_id}: {sorted(data)}")
    return updated


# --- Carts ---

async def _require_store(store_id: int):
    store = await db_service.get_store(store_id)
    if not store:
        raise NotFoundError("Store", store_id)
    return store


async def get_abandoned_carts(store_id: int, hours: int = 24) -> List[AbandonedCart]:
    await _require_store(store_id)
    return await db_service.get_recent_abandoned_carts(store_id, hours)


async def sync_abandoned_carts(store_id: int) -> List[AbandonedCart]:
    """Returns the carts stored for the store. Pulling live checkouts from the storefront happens upstream."""
    await _require_store(store_id)
    carts = await db_service.get_abandoned_carts_by_store(store_id)
    logger.info(f"Synced {len(carts)} abandoned cart(s) for store {store_id}.")
    return carts


async def save_abandoned_cart(cart: AbandonedCart) -> AbandonedCart:
    await _require_store(cart.store_id)
    return await db_service.save_abandoned_cart(cart)


async def simulate_cart_abandonment(store_id: int, count: int = 1) -> List[AbandonedCart]:
    """Creates `count` synthetic abandoned carts for testing the recovery flow."""
    await _require_store(store_id)
    timestamp = int(datetime.now().timestamp() * 1000)
    simulated = []
    for i in range(count):
        cart = AbandonedCart(
            store_id=store_id,
            external_checkout_id=f"sim_{timestamp}_{i}",
            customer_email=f"customer{i}@example.com",
            customer_name=f"Test Customer {i}",
            total_price=random.randint(20, 219),
            currency="USD",
            cart_items=[CartItem(
                id=1000 + i,
                title=f"Product {i + 1}",
                price=f"${random.randint(10, 109)}.99",
                quantity=random.randint(1, 3),
            )],
            checkout_url=f"https://teststore.com/checkout/{timestamp}{i}",
            abandoned_at=utc_now(),
        )
        simulated.append(await db_service.save_abandoned_cart(cart))
    logger.info(f"Created {count} simulated abandoned cart(s) for store {store_id}.")
    return simulated


async def send_recovery_message(cart_id: int, include_discount: bool = False) -> RecoveryAttempt:
    """Sends a recovery message for one cart on demand, outside the automation schedule."""
    cart = await db_service.get_abandoned_cart(cart_id)
    if not cart:
        raise NotFoundError("AbandonedCart", cart_id)
    store = await _require_store(cart.store_id)
    automation_settings = await db_service.get_automation_settings(cart.store_id)

    stage = RecoveryStage.FINAL if include_discount else RecoveryStage.INITIAL
    template = automation_settings.template_for(stage) if automation_settings else None
    recovery = build_recovery_message(
        cart,
        include_discount=include_discount,
        template=template,
        store_name=store.name,
        automation_settings=automation_settings,
    )
    attempt = await recovery_ledger.record_attempt(
        cart.id,
        recovery.message,
        discount_code=recovery.discount_code,
        discount_amount=recovery.discount_amount,
    )
    await send_recovery_notification(cart, stage, recovery.message, store.name)
    recovery_messages_counter.labels(stage=stage.value, trigger="manual").inc()
    return attempt
