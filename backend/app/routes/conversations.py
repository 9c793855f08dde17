# /app/routes/conversations.py
from fastapi import APIRouter, HTTPException, status
import logging

from app.config.settings import settings
from app.models.api import APIResponse, ChatMessageRequest
from app.services import chat_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/conversations",
    tags=["Conversations"],
)

NEW_CONVERSATION = "new"


def _parse_conversation_id(conversation_id: str):
    if conversation_id == NEW_CONVERSATION:
        return None
    try:
        return int(conversation_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="conversation_id must be an integer or 'new'"
        )


@router.post("/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
async def post_message(conversation_id: str, payload: ChatMessageRequest):
    """Stores a widget message and returns the bot's reply. Use 'new' to start a conversation."""
    reply = await chat_service.process_message(
        store_id=payload.store_id,
        conversation_id=_parse_conversation_id(conversation_id),
        content=payload.content,
        sender=payload.sender,
        custom_data=payload.custom_data,
    )
    return reply.model_dump(mode="json")


@router.get("/{conversation_id}/messages", response_model=APIResponse)
async def get_messages(conversation_id: int):
    messages = await chat_service.get_conversation_messages(conversation_id)
    return APIResponse(
        success=True,
        message="Messages retrieved",
        data={"messages": [m.model_dump(mode="json") for m in messages]},
        version=settings.api_version
    )
