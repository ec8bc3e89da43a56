from __future__ import annotations

from fastapi import APIRouter, Depends

from ..config import Settings, get_settings
from ..models.client_config import FirebaseConfigResponse

router = APIRouter(tags=["client-config"])


@router.get("/firebase-config", response_model=FirebaseConfigResponse)
def api_firebase_config(settings: Settings = Depends(get_settings)) -> FirebaseConfigResponse:
    """Public browser config; none of these values are secrets."""
    return FirebaseConfigResponse(
        apiKey=settings.firebase_api_key,
        authDomain=settings.firebase_auth_domain,
        projectId=settings.firebase_project_id,
        storageBucket=settings.firebase_storage_bucket,
        messagingSenderId=settings.firebase_messaging_sender_id,
        appId=settings.firebase_app_id,
        elevenLabsAgentId=settings.elevenlabs_agent_id or "",
    )
