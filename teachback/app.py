from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import Settings, load_settings
from .errors import install_error_handlers
from .logging import install_app_logging, setup_logging
from .routers.chat import router as chat_router
from .routers.client_config import router as client_config_router
from .routers.notes import router as notes_router


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    app = FastAPI(title="Teachback Tutor Server", version=__version__)

    # Configuration is read once here and reached by handlers via get_settings
    app.state.settings = settings

    # CORS
    allow = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_app_logging(app)
    install_error_handlers(app)

    app.include_router(chat_router, prefix="/api")
    app.include_router(notes_router, prefix="/api")
    app.include_router(client_config_router, prefix="/api")

    @app.get("/health")
    def health():  # pragma: no cover - trivial
        return {"status": "ok"}

    return app
