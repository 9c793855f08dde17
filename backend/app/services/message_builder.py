# /app/services/message_builder.py

import logging
from typing import Optional

from app.config import strings
from app.config.settings import settings
from app.models.domain import AbandonedCart, AutomationSettings, RecoveryMessage
from app.services.db_service import db_service
from app.services.discount_service import generate_discount_code
from app.services.template_service import render_template

logger = logging.getLogger(__name__)


def build_recovery_message(
    cart: AbandonedCart,
    customer_name: Optional[str] = None,
    include_discount: bool = False,
    template: Optional[str] = None,
    store_name: Optional[str] = None,
    automation_settings: Optional[AutomationSettings] = None,
) -> RecoveryMessage:
    """
    Builds the text of a cart recovery message.

    Without an explicit template the final template is used when a discount
    is included and the initial template otherwise. The discount code and
    amount are None whenever no discount was included.
    """
    discount_code = None
    discount_amount = None
    discount_type = None

    if include_discount:
        discount_code = generate_discount_code()
        if automation_settings:
            discount_amount = automation_settings.discount_amount
            discount_type = automation_settings.discount_type
        else:
            discount_amount = settings.default_discount_amount
            discount_type = settings.default_discount_type

    if template is None:
        template = strings.FINAL_TEMPLATE if include_discount else strings.INITIAL_TEMPLATE

    message = render_template(
        template,
        cart,
        store_name,
        discount_code=discount_code,
        discount_amount=discount_amount,
        discount_type=discount_type,
        customer_name=customer_name,
    )
    return RecoveryMessage(message=message, discount_code=discount_code, discount_amount=discount_amount)


async def build_recovery_message_for_cart(
    cart: AbandonedCart,
    customer_name: Optional[str] = None,
    include_discount: bool = False,
    template: Optional[str] = None,
) -> RecoveryMessage:
    """Looks up the store name and automation settings, then builds the message."""
    store = await db_service.get_store(cart.store_id)
    automation_settings = await db_service.get_automation_settings(cart.store_id)
    return build_recovery_message(
        cart,
        customer_name=customer_name,
        include_discount=include_discount,
        template=template,
        store_name=store.name if store else None,
        automation_settings=automation_settings,
    )
