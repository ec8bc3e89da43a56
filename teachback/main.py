from __future__ import annotations

import uvicorn

from .app import create_app

# Convenience for `uvicorn teachback.main:app`
app = create_app()


def run() -> None:
    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
