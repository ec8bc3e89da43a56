"""Relay one student utterance to the ElevenLabs conversational agent.

A call opens a websocket, sends the initiation frame and the user message,
then reads frames until one of them carries the agent's reply. Frame shapes
differ across protocol revisions, so classification is a list of extractors
tried in order; the first one that yields text wins.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from ..config import Settings
from ..errors import ConfigurationError, ConnectionClosedError, RelayTimeoutError, TransportError
from ..models.conversation import AgentReplyResult

logger = logging.getLogger("teachback.relay")

DEFAULT_SYSTEM_PROMPT = (
    "You are a friendly educational AI learning companion for grades 6-10. "
    "Have a natural conversation. Ask short questions to clarify. "
    "When the student explains a concept, give feedback: praise 1 correct part, correct mistakes gently, "
    "then give 1-2 next steps. "
    "Keep responses short (2-5 sentences)."
)
LANGUAGE = "en"
CLOSE_TIMEOUT_S = 1.0

Frame = Dict[str, Any]
Extractor = Callable[[Frame], Optional[str]]
Connector = Callable[..., Awaitable[Any]]


def _dig(frame: Any, *path: str) -> Any:
    cur = frame
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _agent_response_event(frame: Frame) -> Optional[str]:
    if frame.get("type") != "agent_response":
        return None
    return _text(_dig(frame, "agent_response_event", "agent_response"))


def _agent_response_direct(frame: Frame) -> Optional[str]:
    if frame.get("type") != "agent_response":
        return None
    return _text(frame.get("agent_response"))


def _response_field(frame: Frame) -> Optional[str]:
    return _text(frame.get("response"))


def _text_field(frame: Frame) -> Optional[str]:
    return _text(frame.get("text"))


REPLY_EXTRACTORS: List[Tuple[str, Extractor]] = [
    ("agent_response_event", _agent_response_event),
    ("agent_response", _agent_response_direct),
    ("response", _response_field),
    ("text", _text_field),
]

CONVERSATION_ID_PATHS: List[Tuple[str, ...]] = [
    ("conversation_id",),
    ("conversation", "conversation_id"),
    ("conversation_initiation_server_data", "conversation_id"),
]


def extract_reply(frame: Frame) -> Optional[Tuple[str, str]]:
    """Return (shape name, reply text) for the first matching shape, else None."""
    for name, extractor in REPLY_EXTRACTORS:
        text = extractor(frame)
        if text is not None:
            return name, text
    return None


def extract_tentative_reply(frame: Frame) -> Optional[str]:
    if frame.get("type") != "internal_tentative_agent_response":
        return None
    return _text(_dig(frame, "tentative_agent_response_internal_event", "tentative_agent_response"))


def extract_conversation_id(frame: Frame) -> Optional[str]:
    for path in CONVERSATION_ID_PATHS:
        value = _text(_dig(frame, *path))
        if value is not None:
            return value
    return None


def _ping_event_id(frame: Frame) -> Any:
    if frame.get("type") != "ping":
        return None
    return _dig(frame, "ping_event", "event_id")


def _initiation_frame(prompt: str) -> Frame:
    return {
        "type": "conversation_initiation_client_data",
        "conversation_config_override": {
            "agent": {
                "prompt": {"prompt": prompt},
                "language": LANGUAGE,
            },
        },
    }


def _decode_frame(raw: Any) -> Optional[Frame]:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    try:
        msg = json.loads(raw)
    except ValueError:
        logger.warning("relay: unparseable frame: %s", str(raw)[:200])
        return None
    if not isinstance(msg, dict):
        return None
    return msg


async def _converse(ws: Any, user_text: str, prompt: str) -> AgentReplyResult:
    conversation_id: Optional[str] = None
    captured: Optional[str] = None
    try:
        await ws.send(json.dumps(_initiation_frame(prompt)))
        await ws.send(json.dumps({"type": "user_message", "text": user_text}))
        logger.info("relay: sent initiation and user_message frames")

        async for raw in ws:
            frame = _decode_frame(raw)
            if frame is None:
                continue
            logger.debug("relay: received frame type=%s", frame.get("type", "unknown"))

            if conversation_id is None:
                conversation_id = extract_conversation_id(frame)
                if conversation_id:
                    logger.info("relay: conversation_id=%s", conversation_id)

            event_id = _ping_event_id(frame)
            if event_id is not None:
                await ws.send(json.dumps({"type": "pong", "event_id": event_id}))
                continue

            match = extract_reply(frame)
            if match is not None:
                shape, text = match
                logger.info("relay: agent reply received (%s shape)", shape)
                return AgentReplyResult(text=text, conversation_id=conversation_id)

            tentative = extract_tentative_reply(frame)
            if tentative is not None:
                captured = tentative
    except ConnectionClosedOK:
        pass
    except ConnectionClosed as e:
        if e.rcvd is None:
            # Dropped without a close frame from the peer
            raise TransportError("Relay connection failed", details=str(e)) from e

    logger.info("relay: connection closed before a final reply")
    if captured is not None:
        return AgentReplyResult(text=captured, conversation_id=conversation_id)
    raise ConnectionClosedError("WebSocket closed before response")


def conversation_url(settings: Settings) -> str:
    base = settings.elevenlabs_ws_base.rstrip("/")
    return f"{base}/convai/conversation?agent_id={quote(settings.elevenlabs_agent_id or '', safe='')}"


async def relay_reply(
    settings: Settings,
    user_text: str,
    system_prompt_override: Optional[str] = None,
    connect: Optional[Connector] = None,
) -> AgentReplyResult:
    if not settings.elevenlabs_configured:
        raise ConfigurationError(
            "ElevenLabs API credentials not configured. "
            "Please set ELEVENLABS_API_KEY and ELEVENLABS_AGENT_ID."
        )
    connect = connect or websockets.connect
    prompt = system_prompt_override or DEFAULT_SYSTEM_PROMPT
    logger.info("relay: starting conversation agent_id=%s", settings.elevenlabs_agent_id)

    try:
        return await asyncio.wait_for(
            _connect_and_converse(connect, settings, user_text, prompt),
            timeout=settings.relay_timeout_s,
        )
    except asyncio.TimeoutError as e:
        logger.warning("relay: no agent reply within %ss", settings.relay_timeout_s)
        raise RelayTimeoutError("Timed out waiting for agent response") from e


async def _connect_and_converse(
    connect: Connector, settings: Settings, user_text: str, prompt: str
) -> AgentReplyResult:
    # The handshake runs under the caller's deadline, so no separate open_timeout
    try:
        ws = await connect(
            conversation_url(settings),
            additional_headers={"xi-api-key": settings.elevenlabs_api_key},
            open_timeout=None,
            close_timeout=CLOSE_TIMEOUT_S,
        )
    except (OSError, WebSocketException) as e:
        logger.error("relay: connection failed: %s", e)
        raise TransportError("Relay connection failed", details=str(e) or type(e).__name__) from e

    try:
        return await _converse(ws, user_text, prompt)
    finally:
        await ws.close()


async def relay(
    settings: Settings,
    user_text: str,
    system_prompt_override: Optional[str] = None,
    connect: Optional[Connector] = None,
) -> str:
    result = await relay_reply(settings, user_text, system_prompt_override, connect=connect)
    return result.text
