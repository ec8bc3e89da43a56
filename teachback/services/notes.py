from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

from ..config import Settings
from ..errors import UpstreamError
from ..models.conversation import NotesDocument, NotesSource, Transcript
from . import http

logger = logging.getLogger("teachback.notes")

EMPTY_TRANSCRIPT_NOTES = "No conversation messages were found to summarize."
NONE_DISCUSSED = "- None discussed"
NEXT_STEP = (
    "- Suggested next step: Review the main ideas from this conversation "
    "and practice with 1–2 example problems."
)
SECTION_HEADINGS = (
    "## Main Topics",
    "## Key Explanations & Insights",
    "## Action Items & Next Steps",
)
TEMPERATURE = 0.4

NOTES_INSTRUCTIONS = (
    "You are an expert educational note-taking assistant for 6th–10th grade tutoring sessions. "
    "Given a full dialogue between a student and a tutoring AI, you write clear, concise study notes.\n\n"
    "Your notes must be structured into three sections with markdown headings:\n"
    "1. Main Topics\n"
    "2. Key Explanations & Insights\n"
    "3. Action Items & Next Steps\n\n"
    "Guidelines:\n"
    "- Use bullet points, not paragraphs.\n"
    "- Be concrete and specific (formulas, definitions, examples).\n"
    "- If a section has no content, include the heading and write a single bullet like '- None discussed'.\n"
    "- Do NOT add extra commentary or chatty language. Just the notes."
)


def _truncate_text(t: str, max_chars: int = 30000) -> str:
    if len(t) <= max_chars:
        return t
    return t[: max_chars - 2000] + "\n...[truncated]...\n" + t[-2000:]


def render_dialogue(transcript: Transcript) -> str:
    lines = []
    for turn in transcript:
        speaker = "Tutor" if turn.role == "assistant" else "Student"
        lines.append(f"{speaker}: {turn.text}")
    return "\n".join(lines)


def build_prompt(transcript: Transcript) -> str:
    return (
        NOTES_INSTRUCTIONS
        + "\n\n---\n\n"
        + "Transcript:\n\n"
        + _truncate_text(render_dialogue(transcript))
        + "\n\nWrite the structured notes now."
    )


def fallback_notes(transcript: Transcript) -> str:
    """Rule-based notes: first question, last tutor explanation, one next step."""
    user_texts = [t.text for t in transcript if t.role == "user"]
    assistant_texts = [t.text for t in transcript if t.role == "assistant"]

    topic = user_texts[0] if user_texts else (assistant_texts[0] if assistant_texts else "")
    main_topics = f"- Main question or topic: {topic}" if topic else NONE_DISCUSSED
    key_explanation = (
        f"- Key explanation from tutor: {assistant_texts[-1]}" if assistant_texts else NONE_DISCUSSED
    )
    action_item = NEXT_STEP if user_texts else NONE_DISCUSSED

    return "\n".join([
        SECTION_HEADINGS[0],
        main_topics,
        "",
        SECTION_HEADINGS[1],
        key_explanation,
        "",
        SECTION_HEADINGS[2],
        action_item,
    ])


def _candidate_text(res: Any) -> str:
    # { candidates: [ { content: { parts: [ { text: "..." } ] } } ] }
    if not isinstance(res, dict):
        return ""
    candidates = res.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(
        p.get("text") or "" for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
    ).strip()


def gemini_url(settings: Settings) -> str:
    base = settings.gemini_api_base.rstrip("/")
    model = quote(settings.gemini_model, safe="/")
    return f"{base}/{model}:generateContent?key={quote(settings.gemini_api_key or '', safe='')}"


def summarize_with_gemini(transcript: Transcript, settings: Settings) -> Optional[str]:
    """Generate notes with Gemini. Returns None when unconfigured or on any failure."""
    if not settings.gemini_api_key:
        return None
    payload = {
        "contents": [
            {"role": "user", "parts": [{"text": build_prompt(transcript)}]},
        ],
        "generationConfig": {"temperature": TEMPERATURE},
    }
    logger.info("notes: calling Gemini model=%s", settings.gemini_model)
    try:
        res = http.http_post_json(
            gemini_url(settings), {}, payload, settings, what="Gemini notes generation"
        )
    except UpstreamError as e:
        logger.error("notes: Gemini request failed, falling back: %s", e)
        return None
    text = _candidate_text(res)
    if not text:
        logger.error("notes: Gemini returned an empty response, falling back")
        return None
    return text


def synthesize_notes(transcript: Transcript, settings: Settings) -> NotesDocument:
    if not transcript:
        return NotesDocument(body=EMPTY_TRANSCRIPT_NOTES, source=NotesSource.FALLBACK, message_count=0)

    if not settings.gemini_api_key:
        logger.warning("notes: GEMINI_API_KEY is not set, using fallback summary")
    else:
        generated = summarize_with_gemini(transcript, settings)
        if generated:
            return NotesDocument(body=generated, source=NotesSource.GENERATED, message_count=len(transcript))

    return NotesDocument(
        body=fallback_notes(transcript),
        source=NotesSource.FALLBACK,
        message_count=len(transcript),
    )
