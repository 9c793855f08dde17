# /app/routes/faqs.py

from fastapi import APIRouter, Query, status

from app.config.settings import settings
from app.models.api import APIResponse, FaqCreate, FaqUpdate, FaqCategoryCreate, FaqCategoryUpdate
from app.models.domain import Faq, FaqCategory
from app.services.db_service import db_service
from app.utils.exceptions import NotFoundError

# FAQ manager endpoints. Active FAQs are what the chat pipeline matches
# incoming questions against.

router = APIRouter(tags=["FAQ Manager"])


async def _require_store(store_id: int):
    if not await db_service.get_store(store_id):
        raise NotFoundError("Store", store_id)


# --- FAQs ---

@router.get("/faqs", response_model=APIResponse)
async def list_faqs(store_id: int = Query(...)):
    faqs = await db_service.get_faqs_by_store(store_id)
    return APIResponse(
        success=True,
        message="FAQs retrieved",
        data={"faqs": [f.model_dump(mode="json") for f in faqs]},
        version=settings.api_version
    )


@router.post("/faqs", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
async def create_faq(payload: FaqCreate):
    await _require_store(payload.store_id)
    faq = await db_service.create_faq(Faq(**payload.model_dump()))
    return APIResponse(
        success=True,
        message="FAQ created",
        data={"faq": faq.model_dump(mode="json")},
        version=settings.api_version
    )


@router.patch("/faqs/{faq_id}", response_model=APIResponse)
async def update_faq(faq_id: int, payload: FaqUpdate):
    faq = await db_service.update_faq(faq_id, payload.model_dump(exclude_unset=True))
    if not faq:
        raise NotFoundError("Faq", faq_id)
    return APIResponse(
        success=True,
        message="FAQ updated",
        data={"faq": faq.model_dump(mode="json")},
        version=settings.api_version
    )


@router.delete("/faqs/{faq_id}", response_model=APIResponse)
async def delete_faq(faq_id: int):
    if not await db_service.delete_faq(faq_id):
        raise NotFoundError("Faq", faq_id)
    return APIResponse(success=True, message="FAQ deleted", version=settings.api_version)


# --- FAQ Categories ---

@router.get("/faq-categories", response_model=APIResponse)
async def list_faq_categories(store_id: int = Query(...)):
    categories = await db_service.get_faq_categories_by_store(store_id)
    return APIResponse(
        success=True,
        message="FAQ categories retrieved",
        data={"categories": [c.model_dump(mode="json") for c in categories]},
        version=settings.api_version
    )


@router.post("/faq-categories", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
async def create_faq_category(payload: FaqCategoryCreate):
    await _require_store(payload.store_id)
    category = await db_service.create_faq_category(FaqCategory(**payload.model_dump()))
    return APIResponse(
        success=True,
        message="FAQ category created",
        data={"category": category.model_dump(mode="json")},
        version=settings.api_version
    )


@router.patch("/faq-categories/{category_id}", response_model=APIResponse)
async def update_faq_category(category_id: int, payload: FaqCategoryUpdate):
    category = await db_service.update_faq_category(category_id, payload.model_dump(exclude_unset=True))
    if not category:
        raise NotFoundError("FaqCategory", category_id)
    return APIResponse(
        success=True,
        message="FAQ category updated",
        data={"category": category.model_dump(mode="json")},
        version=settings.api_version
    )


@router.delete("/faq-categories/{category_id}", response_model=APIResponse)
async def delete_faq_category(category_id: int):
    if not await db_service.delete_faq_category(category_id):
        raise NotFoundError("FaqCategory", category_id)
    return APIResponse(success=True, message="FAQ category deleted", version=settings.api_version)
