# /app/services/notification_service.py

import logging

from app.config import strings
from app.models.domain import AbandonedCart, RecoveryStage

# Outbound delivery (email/SMS) is handled by an external collaborator. This
# service is the hand-off point: it records what would be delivered and to whom.

logger = logging.getLogger(__name__)


def recovery_subject(stage: "RecoveryStage | str", store_name: str) -> str:
    if RecoveryStage(stage) == RecoveryStage.FINAL:
        return strings.RECOVERY_FINAL_SUBJECT
    return strings.RECOVERY_SUBJECT.format(store_name=store_name)


async def send_recovery_notification(cart: AbandonedCart, stage: "RecoveryStage | str", message: str, store_name: str) -> None:
    subject = recovery_subject(stage, store_name)
    logger.info(
        f"Recovery notification queued for {cart.customer_email} "
        f"(cart {cart.id}, stage {RecoveryStage(stage).value}): {subject}"
    )
    logger.debug(f"Recovery notification body for cart {cart.id}:\n{message}")
