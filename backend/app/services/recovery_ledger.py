# /app/services/recovery_ledger.py

import logging
from typing import List, Optional

from app.models.domain import RecoveryAttempt, RecoveryStatus, STATUS_ORDER, utc_now
from app.services.db_service import db_service
from app.utils.exceptions import InvalidStatusTransition

# Records every recovery message sent for a cart and tracks its progress
# through sent -> delivered -> clicked -> converted. Attempts are never deleted.

logger = logging.getLogger(__name__)


async def record_attempt(
    cart_id: int,
    message_content: str,
    discount_code: Optional[str] = None,
    discount_amount: Optional[str] = None,
    conversation_id: Optional[int] = None,
    message_id: Optional[int] = None,
) -> Optional[RecoveryAttempt]:
    cart = await db_service.get_abandoned_cart(cart_id)
    if not cart:
        logger.warning(f"Cannot record recovery attempt: cart {cart_id} not found.")
        return None

    now = utc_now()
    attempt = RecoveryAttempt(
        cart_id=cart_id,
        conversation_id=conversation_id,
        message_id=message_id,
        message_content=message_content,
        status=RecoveryStatus.SENT,
        discount_code=discount_code,
        discount_amount=discount_amount,
        sent_at=now,
        created_at=now,
    )
    saved = await db_service.create_recovery_attempt(attempt)
    logger.info(f"Recorded recovery attempt {saved.id} for cart {cart_id}.")
    return saved


async def update_status(attempt_id: int, status: "RecoveryStatus | str") -> Optional[RecoveryAttempt]:
    """
    Moves an attempt forward to `status`. Re-applying the current status is a
    no-op; moving backwards raises InvalidStatusTransition. converted_at is
    stamped only when the new status is 'converted'.
    """
    new_status = RecoveryStatus(status).value
    attempt = await db_service.get_recovery_attempt(attempt_id)
    if not attempt:
        return None

    current = attempt.status
    if new_status == current:
        return attempt
    if STATUS_ORDER.index(new_status) < STATUS_ORDER.index(current):
        raise InvalidStatusTransition(current, new_status)

    data = {"status": new_status}
    if new_status == RecoveryStatus.CONVERTED.value:
        data["converted_at"] = utc_now()

    updated = await db_service.update_recovery_attempt(attempt_id, data)
    logger.info(f"Recovery attempt {attempt_id} moved from '{current}' to '{new_status}'.")
    return updated


async def list_by_cart(cart_id: int) -> List[RecoveryAttempt]:
    return await db_service.get_recovery_attempts_by_cart(cart_id)


async def list_by_store(
    store_id: int, cart_id: Optional[int] = None, status: Optional[str] = None
) -> List[RecoveryAttempt]:
    return await db_service.get_recovery_attempts_by_store(store_id, cart_id=cart_id, status=status)
