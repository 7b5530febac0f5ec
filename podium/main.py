from __future__ import annotations

from typing import Optional

import uvicorn
from fastapi import FastAPI

from podium.feedback.api import router as feedback_router
from podium.routers.meta import VERSION, router as meta_router
from podium.runtime.logs import configure_logging
from podium.services.container import ServiceContainer
from podium.sessions.api import router as sessions_router
from podium.slides.api import router as slides_router
from podium.stream.api import router as stream_router


def build_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    container = container or ServiceContainer()
    configure_logging(container.settings.log_level)

    app = FastAPI(title="Podium", version=VERSION)
    app.state.container = container

    # Meta
    app.include_router(meta_router)

    # Sessions + live sync
    app.include_router(sessions_router)
    app.include_router(feedback_router)
    app.include_router(stream_router)
    app.include_router(slides_router)

    @app.on_event("startup")
    def _start_sweeper() -> None:
        container.sweeper.start()

    @app.on_event("shutdown")
    def _stop_sweeper() -> None:
        container.sweeper.stop()

    return app


app = build_app()


def run() -> None:
    settings = app.state.container.settings
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
