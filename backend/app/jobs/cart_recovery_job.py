# /app/jobs/cart_recovery_job.py

"""
Automated Cart Recovery Job.

Each run walks every store with automation enabled, loads its recent
abandoned carts that have a customer email, and decides per cart whether the
next recovery message is due:

- no attempts yet      -> "initial"   once initial_delay hours have passed since abandonment
- one attempt          -> "follow_up" once follow_up_delay hours have passed since it was sent
- two attempts         -> "final"     once final_delay hours have passed since the second was sent
- three or more, or any attempt already converted -> nothing more is sent

The number of attempts already recorded decides the stage; elapsed time only
decides whether that stage is due yet.

A cart that fails is logged and reported in the run result without stopping
the run. Overlapping runs in the same process are refused.
"""

import time
import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from app.config.settings import settings
from app.models.domain import (
    AbandonedCart, AutomationSettings, AutomationRunResult, RecoveryAttempt,
    RecoveryStage, RecoveryStatus, Store, as_utc, utc_now,
)
from app.services import recovery_ledger
from app.services.db_service import db_service
from app.services.message_builder import build_recovery_message
from app.services.notification_service import send_recovery_notification
from app.utils.alerting import alerting_service
from app.utils.exceptions import NotFoundError
from app.utils.metrics import automation_runs_counter, automation_run_duration, recovery_messages_counter

logger = logging.getLogger(__name__)

RUN_IN_PROGRESS = "Automation run already in progress"

_run_lock = asyncio.Lock()


def _hours_since(then: Optional[datetime], now: datetime) -> Optional[float]:
    if then is None:
        return None
    return (as_utc(now) - as_utc(then)).total_seconds() / 3600


def _sent_time(attempt: RecoveryAttempt) -> Optional[datetime]:
    return attempt.sent_at or attempt.created_at


def decide_stage(
    attempts: Sequence[RecoveryAttempt],
    cart: AbandonedCart,
    automation_settings: AutomationSettings,
    now: datetime,
) -> Optional[RecoveryStage]:
    """
    Returns the recovery stage that is due for `cart`, or None when nothing
    should be sent. `attempts` must be in creation order.
    """
    if any(a.status == RecoveryStatus.CONVERTED.value for a in attempts):
        return None

    if len(attempts) == 0:
        elapsed = _hours_since(cart.abandoned_at or cart.created_at, now)
        if elapsed is not None and elapsed >= automation_settings.initial_delay:
            return RecoveryStage.INITIAL
        return None

    if len(attempts) == 1:
        elapsed = _hours_since(_sent_time(attempts[0]), now)
        if elapsed is not None and elapsed >= automation_settings.follow_up_delay:
            return RecoveryStage.FOLLOW_UP
        return None

    if len(attempts) == 2:
        elapsed = _hours_since(_sent_time(attempts[1]), now)
        if elapsed is not None and elapsed >= automation_settings.final_delay:
            return RecoveryStage.FINAL
        return None

    return None


async def _process_cart(
    store: Store,
    cart: AbandonedCart,
    automation_settings: AutomationSettings,
    now: datetime,
) -> bool:
    """Sends the due recovery message for one cart. Returns True if one was sent."""
    attempts = await recovery_ledger.list_by_cart(cart.id)
    stage = decide_stage(attempts, cart, automation_settings, now)
    if stage is None:
        return False

    include_discount = stage == RecoveryStage.FINAL and automation_settings.include_discount_in_final
    recovery = build_recovery_message(
        cart,
        include_discount=include_discount,
        template=automation_settings.template_for(stage),
        store_name=store.name,
        automation_settings=automation_settings,
    )

    attempt = await recovery_ledger.record_attempt(
        cart.id,
        recovery.message,
        discount_code=recovery.discount_code,
        discount_amount=recovery.discount_amount,
    )
    if attempt is None:
        raise NotFoundError("AbandonedCart", cart.id)

    await send_recovery_notification(cart, stage, recovery.message, store.name)
    recovery_messages_counter.labels(stage=stage.value, trigger="automation").inc()
    logger.info(f"Sent {stage.value} recovery message for cart {cart.id} (store {store.id}).")
    return True


async def _run(now: datetime) -> AutomationRunResult:
    result = AutomationRunResult(success=True)
    stores: List[Store] = await db_service.get_stores_with_automation()
    logger.info(f"Cart recovery run: {len(stores)} store(s) with automation enabled.")

    for store in stores:
        automation_settings = await db_service.get_automation_settings(store.id)
        if not automation_settings or not automation_settings.is_enabled:
            continue

        carts = await db_service.get_carts_for_automation(store.id, settings.cart_recovery_window_hours, now)
        for cart in carts:
            result.carts_evaluated += 1
            try:
                if await _process_cart(store, cart, automation_settings, now):
                    result.messages_sent += 1
            except Exception as e:
                logger.error(f"Cart recovery failed for cart {cart.id}: {e}", exc_info=True)
                result.failures.append({"cart_id": cart.id, "error": str(e)})

    return result


async def run_once(now: Optional[datetime] = None) -> AutomationRunResult:
    """Performs a single automation pass. Never raises."""
    if _run_lock.locked():
        logger.warning("Cart recovery run requested while another run is in progress.")
        return AutomationRunResult(success=False, error=RUN_IN_PROGRESS)

    async with _run_lock:
        start_time = time.monotonic()
        try:
            result = await _run(now or utc_now())
        except Exception as e:
            logger.error(f"Cart recovery run failed: {e}", exc_info=True)
            automation_runs_counter.labels(status="failed").inc()
            await alerting_service.send_critical_alert(
                error=f"Cart recovery automation failed: {e}",
                context={"job": "cart_recovery"},
            )
            return AutomationRunResult(success=False, error=str(e))
        finally:
            automation_run_duration.observe(time.monotonic() - start_time)

    automation_runs_counter.labels(status="partial" if result.failures else "success").inc()
    logger.info(
        f"Cart recovery run finished: {result.carts_evaluated} cart(s) evaluated, "
        f"{result.messages_sent} message(s) sent, {len(result.failures)} failure(s)."
    )
    return result


async def run_automated_recovery() -> AutomationRunResult:
    """Entry point for the scheduler and the manual trigger."""
    logger.info("Starting cart recovery automation run...")
    return await run_once()
