from __future__ import annotations

from typing import Any, Optional
from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Optional[str] = Field(default=None, description="user|assistant|system")
    content: Optional[str] = None


class ChatRequest(BaseModel):
    # Validated by the chat router, which skips malformed entries
    messages: Optional[Any] = Field(
        default=None,
        description="Client-side message buffer, oldest first.",
    )


class ChatResponse(BaseModel):
    text: str
