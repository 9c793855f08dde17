# backend/tests/unit/test_notification_service.py
import logging
import pytest

from app.config import strings
from app.models.domain import AbandonedCart
from app.services.notification_service import recovery_subject, send_recovery_notification


def test_subject_per_stage():
    assert recovery_subject("initial", "Acme") == strings.RECOVERY_SUBJECT.format(store_name="Acme")
    assert recovery_subject("follow_up", "Acme") == strings.RECOVERY_SUBJECT.format(store_name="Acme")
    assert recovery_subject("final", "Acme") == strings.RECOVERY_FINAL_SUBJECT


@pytest.mark.asyncio
async def test_notification_is_logged_for_the_customer(caplog):
    cart = AbandonedCart(id=5, store_id=1, external_checkout_id="chk", customer_email="jane@example.com")

    with caplog.at_level(logging.INFO, logger="app.services.notification_service"):
        await send_recovery_notification(cart, "initial", "Hello Jane", "Acme")

    assert "jane@example.com" in caplog.text
    assert "stage initial" in caplog.text
