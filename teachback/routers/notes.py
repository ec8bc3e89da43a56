from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..config import Settings, get_settings
from ..models.conversation import NotesDocument
from ..models.notes import NotesResponse
from ..services import notes as notes_svc
from ..services import transcript as transcript_svc

logger = logging.getLogger("teachback")

router = APIRouter(tags=["notes"])

NO_CONVERSATION = "No recent conversation found. Teach the AI first to generate notes."


@router.get("/generate-notes", response_model=NotesResponse)
def api_generate_notes(settings: Settings = Depends(get_settings)) -> NotesResponse:
    doc: Optional[NotesDocument] = None
    try:
        transcript = transcript_svc.fetch_latest_transcript(settings)
        if transcript:
            logger.info("generate-notes: summarizing %d message(s)", len(transcript))
            doc = notes_svc.synthesize_notes(transcript, settings)
    except Exception as e:
        logger.exception("generate-notes: failed")
        raise HTTPException(
            status_code=500,
            detail={"message": "Failed to generate notes from the latest conversation", "details": str(e)},
        )

    if doc is None:
        raise HTTPException(status_code=400, detail=NO_CONVERSATION)
    return NotesResponse(notes=doc.body, source=doc.source, messageCount=doc.message_count)
