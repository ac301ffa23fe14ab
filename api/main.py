from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agents.orchestrator import OrchestratorAgent
from api.middleware.logging import RequestLoggingMiddleware
from api.routers import chat
from settings import SETTINGS

logging.basicConfig(
    level=logging.DEBUG if SETTINGS.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


def create_app(orchestrator: OrchestratorAgent | None = None) -> FastAPI:
    app = FastAPI(title="Medevac Quote Agent", version="0.1.0")
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.orchestrator = orchestrator or OrchestratorAgent()

    app.include_router(chat.router, prefix="/api/v1")
    # Older web clients post straight to /chat.
    app.include_router(chat.legacy_router)

    @app.get("/health")
    async def health():
        orch: OrchestratorAgent = app.state.orchestrator
        return {
            "ok": True,
            "service": "medevac-quote-agent",
            "llm_provider": orch.llm.provider,
            "llm_model": orch.llm.model,
            "llm_runtime_available": orch.llm.available(),
            "rate_table_categories": [c.value for c in orch.rate_table.categories()],
        }

    return app


app = create_app()
