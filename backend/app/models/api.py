# /app/models/api.py

from pydantic import BaseModel, Field, field_validator
from typing import Dict, Optional, Any
from datetime import datetime

from app.models.domain import DiscountType, RecoveryStatus, utc_now

# This file contains Pydantic models that define the structure of data for
# API requests and responses, ensuring type safety and validation.

DELAY_HOURS = dict(ge=1, le=72)
DISCOUNT_AMOUNT_PATTERN = r"^\d+(\.\d+)?$"


def _reject_null(v):
    # An omitted field leaves the stored value alone; an explicit null would erase it.
    if v is None:
        raise ValueError("may not be null")
    return v


class APIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=utc_now)
    version: str


# --- Cart Recovery ---

class AutomationSettingsCreate(BaseModel):
    store_id: int
    is_enabled: bool = False
    initial_delay: int = Field(default=1, **DELAY_HOURS)
    follow_up_delay: int = Field(default=24, **DELAY_HOURS)
    final_delay: int = Field(default=48, **DELAY_HOURS)
    initial_template: Optional[str] = Field(default=None, min_length=1)
    follow_up_template: Optional[str] = Field(default=None, min_length=1)
    final_template: Optional[str] = Field(default=None, min_length=1)
    include_discount_in_final: bool = True
    discount_amount: Optional[str] = Field(default=None, pattern=DISCOUNT_AMOUNT_PATTERN)
    discount_type: Optional[DiscountType] = None


class AutomationSettingsUpdate(BaseModel):
    is_enabled: Optional[bool] = None
    initial_delay: Optional[int] = Field(default=None, **DELAY_HOURS)
    follow_up_delay: Optional[int] = Field(default=None, **DELAY_HOURS)
    final_delay: Optional[int] = Field(default=None, **DELAY_HOURS)
    initial_template: Optional[str] = Field(default=None, min_length=1)
    follow_up_template: Optional[str] = Field(default=None, min_length=1)
    final_template: Optional[str] = Field(default=None, min_length=1)
    include_discount_in_final: Optional[bool] = None
    discount_amount: Optional[str] = Field(default=None, pattern=DISCOUNT_AMOUNT_PATTERN)
    discount_type: Optional[DiscountType] = None

    @field_validator("*")
    @classmethod
    def reject_null(cls, v):
        return _reject_null(v)


class SimulateCartsRequest(BaseModel):
    count: int = Field(default=1, ge=1, le=50)


class SendRecoveryMessageRequest(BaseModel):
    include_discount: bool = False


class AttemptStatusUpdate(BaseModel):
    status: RecoveryStatus


# --- Conversations ---

class ChatMessageRequest(BaseModel):
    store_id: int
    content: str = Field(..., min_length=1, max_length=4000)
    sender: str = Field(default="user", pattern="^(user|bot)$")
    custom_data: Optional[Dict[str, Any]] = None


# --- FAQ Manager ---

class FaqCreate(BaseModel):
    store_id: int
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    category_id: Optional[int] = None
    is_active: bool = True
    sort_order: int = 0


class FaqUpdate(BaseModel):
    question: Optional[str] = Field(default=None, min_length=1)
    answer: Optional[str] = Field(default=None, min_length=1)
    category_id: Optional[int] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None

    @field_validator("question", "answer", "is_active", "sort_order")
    @classmethod
    def reject_null(cls, v):
        # category_id may be cleared with null
        return _reject_null(v)


class FaqCategoryCreate(BaseModel):
    store_id: int
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    sort_order: int = 0


class FaqCategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    sort_order: Optional[int] = None

    @field_validator("name", "sort_order")
    @classmethod
    def reject_null(cls, v):
        return _reject_null(v)
