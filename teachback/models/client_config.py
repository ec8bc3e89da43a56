from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class FirebaseConfigResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: str = Field("", alias="apiKey")
    auth_domain: str = Field("", alias="authDomain")
    project_id: str = Field("", alias="projectId")
    storage_bucket: str = Field("", alias="storageBucket")
    messaging_sender_id: str = Field("", alias="messagingSenderId")
    app_id: str = Field("", alias="appId")
    eleven_labs_agent_id: str = Field("", alias="elevenLabsAgentId")
