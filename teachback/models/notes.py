from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .conversation import NotesSource


class NotesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    notes: str
    source: NotesSource
    message_count: int = Field(..., ge=0, alias="messageCount")
