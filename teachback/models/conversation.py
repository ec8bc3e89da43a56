from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Literal, Optional

Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class ConversationTurn:
    role: Role
    text: str


Transcript = List[ConversationTurn]


@dataclass(frozen=True)
class AgentReplyResult:
    text: str
    conversation_id: Optional[str] = None


class NotesSource(str, Enum):
    GENERATED = "generated"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class NotesDocument:
    """Markdown study notes for one transcript, with where they came from."""

    body: str
    source: NotesSource
    message_count: int = 0
