# /app/routes/cart_recovery.py

import logging
from typing import Optional
from fastapi import APIRouter, HTTPException, Query, status

from app.config.settings import settings
from app.jobs.cart_recovery_job import run_automated_recovery, RUN_IN_PROGRESS
from app.models.api import (
    APIResponse, AutomationSettingsCreate, AutomationSettingsUpdate,
    SimulateCartsRequest, SendRecoveryMessageRequest, AttemptStatusUpdate,
)
from app.models.domain import RecoveryStatus
from app.services import cart_recovery_service, recovery_ledger
from app.utils.exceptions import NotFoundError

# Dashboard endpoints for cart recovery: automation settings, the manual
# automation trigger, abandoned carts and the recovery attempt ledger.

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/cart-recovery",
    tags=["Cart Recovery"],
)


def _dump(model) -> dict:
    return model.model_dump(mode="json")


@router.post("/run", response_model=APIResponse)
async def run_automation_now():
    """Runs the recovery automation immediately."""
    result = await run_automated_recovery()
    if not result.success:
        code = status.HTTP_409_CONFLICT if result.error == RUN_IN_PROGRESS else status.HTTP_500_INTERNAL_SERVER_ERROR
        raise HTTPException(status_code=code, detail=f"Error processing automation: {result.error}")
    return APIResponse(
        success=True,
        message="Automation processed successfully",
        data=_dump(result),
        version=settings.api_version
    )


# --- Automation Settings ---

@router.get("/automation-settings/{store_id}", response_model=APIResponse)
async def get_automation_settings(store_id: int):
    automation_settings = await cart_recovery_service.get_automation_settings(store_id)
    return APIResponse(
        success=True,
        message="Automation settings retrieved",
        data={"settings": _dump(automation_settings)},
        version=settings.api_version
    )


@router.post("/automation-settings", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
async def create_automation_settings(payload: AutomationSettingsCreate):
    created = await cart_recovery_service.create_automation_settings(payload.model_dump())
    return APIResponse(
        success=True,
        message="Automation settings created",
        data={"settings": _dump(created)},
        version=settings.api_version
    )


@router.patch("/automation-settings/{settings_id}", response_model=APIResponse)
async def update_automation_settings(settings_id: int, payload: AutomationSettingsUpdate):
    changes = payload.model_dump(exclude_unset=True, mode="json")
    updated = await cart_recovery_service.update_automation_settings(settings_id, changes)
    return APIResponse(
        success=True,
        message="Automation settings updated",
        data={"settings": _dump(updated)},
        version=settings.api_version
    )


# --- Abandoned Carts ---

@router.get("/abandoned-carts/{store_id}", response_model=APIResponse)
async def get_abandoned_carts(store_id: int, hours: int = Query(24, ge=1, le=720)):
    carts = await cart_recovery_service.get_abandoned_carts(store_id, hours)
    return APIResponse(
        success=True,
        message=f"Found {len(carts)} abandoned cart(s)",
        data={"carts": [_dump(c) for c in carts]},
        version=settings.api_version
    )


@router.post("/sync/{store_id}", response_model=APIResponse)
async def sync_abandoned_carts(store_id: int):
    carts = await cart_recovery_service.sync_abandoned_carts(store_id)
    return APIResponse(
        success=True,
        message=f"Synced {len(carts)} abandoned cart(s)",
        data={"carts": [_dump(c) for c in carts]},
        version=settings.api_version
    )


@router.post("/simulate/{store_id}", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
async def simulate_cart_abandonment(store_id: int, payload: Optional[SimulateCartsRequest] = None):
    count = payload.count if payload else 1
    carts = await cart_recovery_service.simulate_cart_abandonment(store_id, count)
    return APIResponse(
        success=True,
        message=f"Created {count} simulated abandoned cart(s)",
        data={"carts": [_dump(c) for c in carts]},
        version=settings.api_version
    )


@router.post("/send-message/{cart_id}", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
async def send_recovery_message(cart_id: int, payload: Optional[SendRecoveryMessageRequest] = None):
    include_discount = payload.include_discount if payload else False
    attempt = await cart_recovery_service.send_recovery_message(cart_id, include_discount)
    return APIResponse(
        success=True,
        message="Recovery message sent",
        data={"attempt": _dump(attempt)},
        version=settings.api_version
    )


# --- Recovery Attempts ---

@router.get("/attempts/{store_id}", response_model=APIResponse)
async def list_recovery_attempts(
    store_id: int,
    cart_id: Optional[int] = Query(None),
    status_filter: Optional[RecoveryStatus] = Query(None, alias="status"),
):
    attempts = await recovery_ledger.list_by_store(
        store_id, cart_id=cart_id, status=status_filter.value if status_filter else None
    )
    return APIResponse(
        success=True,
        message=f"Found {len(attempts)} recovery attempt(s)",
        data={"attempts": [_dump(a) for a in attempts]},
        version=settings.api_version
    )


@router.patch("/attempts/{attempt_id}/status", response_model=APIResponse)
async def update_attempt_status(attempt_id: int, payload: AttemptStatusUpdate):
    attempt = await recovery_ledger.update_status(attempt_id, payload.status)
    if not attempt:
        raise NotFoundError("RecoveryAttempt", attempt_id)
    return APIResponse(
        success=True,
        message=f"Recovery attempt marked as {attempt.status}",
        data={"attempt": _dump(attempt)},
        version=settings.api_version
    )
