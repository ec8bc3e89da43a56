"""Fetch the latest stored ElevenLabs conversation and normalize its turns."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from ..config import Settings
from ..errors import ConfigurationError
from ..models.conversation import ConversationTurn, Role, Transcript
from . import http

logger = logging.getLogger("teachback.transcript")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Extractor = Callable[[Any], Any]


def _field(name: str) -> Extractor:
    def extract(data: Any) -> Any:
        if not isinstance(data, dict):
            return None
        value = data.get(name)
        # An empty list is still a present field
        if isinstance(value, (list, dict)) or value:
            return value
        return None

    return extract


def _bare_list(data: Any) -> Any:
    return data if isinstance(data, list) else None


LIST_EXTRACTORS: List[Extractor] = [_bare_list, _field("conversations"), _field("items")]
MESSAGE_EXTRACTORS: List[Extractor] = [
    _field("messages"),
    _field("history"),
    _field("turns"),
    _field("conversation"),
    _field("transcript"),
]
TIMESTAMP_FIELDS = ("created_at", "updated_at", "start_time_unix_secs")
ID_FIELDS = ("conversation_id", "id")


def first_match(extractors: List[Extractor], data: Any) -> Any:
    for extractor in extractors:
        value = extractor(data)
        if value is not None:
            return value
    return None


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, bool):
        return _EPOCH
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return _EPOCH
    if isinstance(value, str) and value.strip():
        s = value.strip()
        if s.endswith("Z") or s.endswith("z"):
            s = s[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(s)
        except ValueError:
            return _EPOCH
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts
    return _EPOCH


def conversation_timestamp(entry: Any) -> datetime:
    """Creation time, else update time, else start time, else the epoch."""
    if not isinstance(entry, dict):
        return _EPOCH
    for name in TIMESTAMP_FIELDS:
        value = entry.get(name)
        if value:
            return _parse_timestamp(value)
    return _EPOCH


def conversation_identifier(entry: Any) -> Optional[str]:
    if not isinstance(entry, dict):
        return None
    for name in ID_FIELDS:
        value = entry.get(name)
        if value:
            return str(value)
    return None


def select_latest(conversations: List[Any]) -> Optional[Any]:
    # sorted() is stable with reverse=True, so equal timestamps keep list order
    if not conversations:
        return None
    return sorted(conversations, key=conversation_timestamp, reverse=True)[0]


def resolve_role(record: Any) -> Role:
    raw: Any = None
    if isinstance(record, dict):
        raw = record.get("role") or record.get("speaker")
        if not raw and isinstance(record.get("is_user"), bool):
            raw = "user" if record["is_user"] else "assistant"
    if raw == "assistant" or raw == "agent":
        return "assistant"
    return "user"


def resolve_text(record: Any) -> Optional[str]:
    if isinstance(record, str):
        candidates = [record]
    elif isinstance(record, dict):
        candidates = [record.get("text"), record.get("message"), record.get("content")]
    else:
        return None
    for value in candidates:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def normalize_messages(raw_messages: List[Any]) -> Transcript:
    turns: Transcript = []
    for idx, record in enumerate(raw_messages):
        text = resolve_text(record)
        if text is None:
            logger.warning("transcript: message %d has no text content, dropped", idx)
            continue
        turns.append(ConversationTurn(role=resolve_role(record), text=text))
    return turns


def _auth_headers(settings: Settings) -> Dict[str, str]:
    return {"xi-api-key": settings.elevenlabs_api_key or ""}


def fetch_latest_transcript(settings: Settings) -> Transcript:
    if not settings.elevenlabs_configured:
        raise ConfigurationError(
            "ElevenLabs API credentials not configured. "
            "Please set ELEVENLABS_API_KEY and ELEVENLABS_AGENT_ID."
        )
    base = settings.elevenlabs_api_base.rstrip("/")
    agent_id = settings.elevenlabs_agent_id or ""
    logger.info("transcript: listing conversations agent_id=%s", agent_id)

    list_url = f"{base}/convai/conversations?agent_id={quote(agent_id, safe='')}"
    list_data = http.http_get_json(
        list_url, _auth_headers(settings), settings, what="Listing ElevenLabs conversations"
    )
    conversations = first_match(LIST_EXTRACTORS, list_data)
    if not isinstance(conversations, list) or not conversations:
        logger.info("transcript: no conversations found for this agent")
        return []
    logger.info("transcript: found %d conversation(s)", len(conversations))

    latest = select_latest(conversations)
    conversation_id = conversation_identifier(latest)
    if not conversation_id:
        logger.error("transcript: latest conversation has no identifier")
        return []
    logger.info("transcript: selected conversation_id=%s", conversation_id)

    detail_url = f"{base}/convai/conversations/{quote(conversation_id, safe='')}"
    detail = http.http_get_json(
        detail_url, _auth_headers(settings), settings, what="Fetching ElevenLabs conversation"
    )
    raw_messages = first_match(MESSAGE_EXTRACTORS, detail)
    if not isinstance(raw_messages, list):
        logger.warning("transcript: no message list in conversation %s", conversation_id)
        return []

    transcript = normalize_messages(raw_messages)
    logger.info("transcript: normalized %d of %d message(s)", len(transcript), len(raw_messages))
    return transcript
