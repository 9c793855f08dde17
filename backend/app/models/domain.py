# /app/models/domain.py

import json
import logging
from enum import Enum
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

# This file defines the core Pydantic models used throughout the application's
# business logic. These models ensure data consistency and provide validation.

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class RecoveryStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    CLICKED = "clicked"
    CONVERTED = "converted"


# Forward order of recovery attempt statuses
STATUS_ORDER = [
    RecoveryStatus.SENT.value,
    RecoveryStatus.DELIVERED.value,
    RecoveryStatus.CLICKED.value,
    RecoveryStatus.CONVERTED.value,
]


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Intent(str, Enum):
    ORDER_STATUS = "order_status"
    PRODUCT_INFO = "product_info"
    ABANDONED_CART = "abandoned_cart"
    GENERAL_QUESTION = "general_question"
    SUPPORT_REQUEST = "support_request"


class RecoveryStage(str, Enum):
    INITIAL = "initial"
    FOLLOW_UP = "follow_up"
    FINAL = "final"


class Store(BaseModel):
    id: Optional[int] = None
    name: str
    domain: Optional[str] = None
    access_token: Optional[str] = None
    bot_settings: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)


class CartItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[int, str]] = None
    title: str = "Product"
    price: str = "0"
    quantity: int = 1
    image: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def price_as_string(cls, v):
        if v is None:
            return "0"
        return str(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def quantity_defaults_to_one(cls, v):
        return v or 1

    @property
    def unit_price(self) -> float:
        """Numeric price; tolerates currency symbols and thousands separators."""
        cleaned = self.price.replace("$", "").replace(",", "").strip()
        try:
            return float(cleaned)
        except ValueError:
            return 0.0

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity


def normalize_cart_items(value: Any) -> List[Any]:
    """
    Normalizes cart items stored upstream as a list, a JSON-encoded string,
    a single bare object or nothing into a plain list of item entries.
    """
    if value is None:
        return []

    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            value = json.loads(value)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Could not parse cart items string: {e}")
            return []

    if isinstance(value, (dict, CartItem)):
        return [value]

    if isinstance(value, (list, tuple)):
        items = []
        for entry in value:
            if isinstance(entry, (dict, CartItem)):
                items.append(entry)
            else:
                logger.warning(f"Dropping malformed cart item entry: {entry!r}")
        return items

    logger.warning(f"Unsupported cart items type: {type(value).__name__}")
    return []


class AbandonedCart(BaseModel):
    id: Optional[int] = None
    store_id: int
    external_checkout_id: str
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    customer_profile_id: Optional[int] = None
    total_price: Optional[float] = None
    currency: Optional[str] = None
    cart_items: List[CartItem] = Field(default_factory=list)
    checkout_url: Optional[str] = None
    abandoned_at: Optional[datetime] = Field(default_factory=utc_now)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("cart_items", mode="before")
    @classmethod
    def parse_cart_items(cls, v):
        return normalize_cart_items(v)

    @field_validator("total_price", mode="before")
    @classmethod
    def parse_total_price(cls, v):
        if v in (None, ""):
            return None
        return float(str(v).replace("$", "").replace(",", ""))

    @field_validator("abandoned_at", "created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v):
        return as_utc(v) if v is not None else None


class RecoveryAttempt(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: Optional[int] = None
    cart_id: int
    conversation_id: Optional[int] = None
    message_id: Optional[int] = None
    message_content: Optional[str] = None
    status: RecoveryStatus = RecoveryStatus.SENT
    discount_code: Optional[str] = None
    discount_amount: Optional[str] = None
    sent_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AutomationSettings(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: Optional[int] = None
    store_id: int
    is_enabled: bool = False
    initial_delay: int = Field(default=1, ge=0)
    follow_up_delay: int = Field(default=24, ge=0)
    final_delay: int = Field(default=48, ge=0)
    initial_template: str
    follow_up_template: str
    final_template: str
    include_discount_in_final: bool = True
    discount_amount: str = "10"
    discount_type: DiscountType = DiscountType.PERCENTAGE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def template_for(self, stage: "RecoveryStage | str") -> str:
        stage = RecoveryStage(stage)
        if stage == RecoveryStage.INITIAL:
            return self.initial_template
        if stage == RecoveryStage.FOLLOW_UP:
            return self.follow_up_template
        return self.final_template


class CustomerProfile(BaseModel):
    id: Optional[int] = None
    store_id: int
    identifier: str
    email: Optional[str] = None
    name: Optional[str] = None
    visitor_id: Optional[str] = None
    first_seen: datetime = Field(default_factory=utc_now)
    last_seen: datetime = Field(default_factory=utc_now)
    conversation_count: int = 0


class Conversation(BaseModel):
    id: Optional[int] = None
    store_id: int
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    visitor_id: Optional[str] = None
    customer_profile_id: Optional[int] = None
    status: str = "open"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Message(BaseModel):
    id: Optional[int] = None
    conversation_id: int
    content: str
    sender: str  # "user" or "bot"
    metadata: Optional[Union[Dict[str, Any], str]] = None
    created_at: Optional[datetime] = None


class FaqCategory(BaseModel):
    id: Optional[int] = None
    store_id: int
    name: str
    description: Optional[str] = None
    sort_order: int = 0
    created_at: Optional[datetime] = None


class Faq(BaseModel):
    id: Optional[int] = None
    store_id: int
    category_id: Optional[int] = None
    question: str
    answer: str
    is_active: bool = True
    sort_order: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Pipeline value objects ---

class ChatMessage(BaseModel):
    role: str  # "system", "user" or "assistant"
    content: str


class IntentResult(BaseModel):
    intent: str = Intent.GENERAL_QUESTION.value
    order_number: Optional[str] = None
    product_query: Optional[str] = None
    customer_email: Optional[str] = None
    complete_purchase: bool = False


class FaqMatch(BaseModel):
    matched: bool = False
    faq_index: Optional[int] = None
    confidence: Optional[float] = None


class RecoveryMessage(BaseModel):
    message: str
    discount_code: Optional[str] = None
    discount_amount: Optional[str] = None


class AutomationRunResult(BaseModel):
    success: bool
    error: Optional[str] = None
    carts_evaluated: int = 0
    messages_sent: int = 0
    failures: List[Dict[str, Any]] = Field(default_factory=list)


class ProductSummary(BaseModel):
    id: Optional[Union[int, str]] = None
    title: str
    description: str = ""
    price: str = ""
    image: str = ""
    stock_status: str = "Unknown"
    url: Optional[str] = None


class ChatReply(BaseModel):
    message: Message
    conversation_id: int
    bot_response: Optional[str] = None
    bot_message_id: Optional[int] = None
    intent: Optional[Dict[str, Any]] = None
    products: List[ProductSummary] = Field(default_factory=list)
