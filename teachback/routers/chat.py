from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException

from ..config import Settings, get_settings
from ..errors import ValidationError
from ..models.chat import ChatMessage, ChatRequest, ChatResponse
from ..services import relay as relay_svc

logger = logging.getLogger("teachback")

router = APIRouter(tags=["chat"])


def coerce_messages(raw: Any) -> List[ChatMessage]:
    """Keep object entries; a non-string role or content counts as absent."""
    if not isinstance(raw, list):
        raise ValidationError("Invalid messages array")
    messages: List[ChatMessage] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        role, content = item.get("role"), item.get("content")
        messages.append(ChatMessage(
            role=role if isinstance(role, str) else None,
            content=content if isinstance(content, str) else None,
        ))
    return messages


def split_messages(raw: Any) -> Tuple[str, Optional[str]]:
    """Return (latest user content, first system content or None)."""
    if not isinstance(raw, list) or not raw:
        raise ValidationError("Invalid messages array")
    messages = coerce_messages(raw)
    last_user = next((m for m in reversed(messages) if m.role == "user"), None)
    if last_user is None or not last_user.content:
        raise ValidationError("No user message found")
    system = next((m for m in messages if m.role == "system"), None)
    return last_user.content, (system.content if system and system.content else None)


@router.post("/chat", response_model=ChatResponse)
async def api_chat(payload: ChatRequest, settings: Settings = Depends(get_settings)) -> ChatResponse:
    user_text, system_prompt = split_messages(payload.messages)
    logger.info("chat: relaying user message (%d chars)", len(user_text))
    try:
        reply = await relay_svc.relay(settings, user_text, system_prompt)
    except Exception as e:
        logger.exception("chat: relay failed")
        raise HTTPException(status_code=500, detail={"message": "Failed to get AI response", "details": str(e)})
    return ChatResponse(text=reply)
