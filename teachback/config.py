from __future__ import annotations

from typing import Optional

from fastapi import Request
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values may be provided via environment variables or a `.env` file. One
    instance is built at startup and handed to every service call, so tests can
    construct their own without touching the process environment.
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # HTTP
    host: str = "0.0.0.0"
    port: int = 3000
    cors_allow_origins: str = Field("*", description="Comma-separated origins")
    log_level: Optional[str] = Field(None, description="Logging level name or number")

    # ElevenLabs conversational agent
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_agent_id: Optional[str] = None
    elevenlabs_api_base: str = "https://api.elevenlabs.io/v1"
    elevenlabs_ws_base: str = "wss://api.elevenlabs.io/v1"
    relay_timeout_s: float = Field(15.0, gt=0, description="Hard bound on one relay call")

    # Outbound REST calls
    http_timeout_s: float = Field(30.0, gt=0)
    ssl_no_verify: bool = False

    # Gemini note generation
    gemini_api_key: Optional[str] = None
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "models/gemini-1.5-flash"

    # Public Firebase client config (served as-is to the browser)
    firebase_api_key: str = ""
    firebase_auth_domain: str = ""
    firebase_project_id: str = ""
    firebase_storage_bucket: str = ""
    firebase_messaging_sender_id: str = ""
    firebase_app_id: str = ""

    @property
    def elevenlabs_configured(self) -> bool:
        return bool(self.elevenlabs_api_key and self.elevenlabs_agent_id)


def load_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def get_settings(request: Request) -> Settings:  # FastAPI dependency helper
    return request.app.state.settings
