"""Shopping assistant chat endpoint."""

from fastapi import APIRouter

from app.models.contracts import ChatRequest, ChatResponse
from app.services import chat
from app.utils.api_errors import ValidationError

router = APIRouter(tags=["chat"])


@router.post("/chat")
async def post_chat(body: ChatRequest) -> ChatResponse:
    if not body.message.strip():
        raise ValidationError("Message is required", code="missing_message")
    return await chat.reply(body)
