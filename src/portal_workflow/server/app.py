"""FastAPI app factory."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal_workflow import __version__
from portal_workflow.engine.dispatcher import EventDispatcher, build_dispatcher
from portal_workflow.server.config import ServerSettings
from portal_workflow.server.router import router as triggers_router


def create_app(
    settings: ServerSettings | None = None, dispatcher: EventDispatcher | None = None
) -> FastAPI:
    settings = settings or ServerSettings()
    dispatcher = dispatcher or build_dispatcher(settings)

    app = FastAPI(
        title="Portal Workflow Engine",
        version=__version__,
        description="Administrative API over workflow triggers, execution logs and events.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(triggers_router, prefix="/api/triggers", tags=["triggers"])

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app
