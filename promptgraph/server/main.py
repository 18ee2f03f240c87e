"""
Python FastAPI + Socket.IO server for the prompt-flow editor.

Start with:
    python -m promptgraph.server.main

Or via uvicorn directly:
    uvicorn promptgraph.server.main:socket_app --port 3001 --reload
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from promptgraph import __version__
from promptgraph.server import state as state_module
from promptgraph.server.config import ServerSettings, load_settings
from promptgraph.server.events.socket_server import attach_graph_service, create_socket_app
from promptgraph.server.routes.graph_routes import router

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

def create_app(settings: Optional[ServerSettings] = None) -> FastAPI:
    settings = settings or load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    state_module.graph_state = state_module.GraphState(seed_demo=settings.seed_demo)
    attach_graph_service(state_module.graph_state.service)

    app = FastAPI(title="PromptGraph API", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    logger.info(f"PromptGraph API ready (seed_demo={settings.seed_demo})")
    return app


settings = load_settings()
app = create_app(settings)

# ---------------------------------------------------------------------------
# Wrap with Socket.IO ASGI layer
# ---------------------------------------------------------------------------

# socket_app is the top-level ASGI app passed to uvicorn.
# Socket.IO connections are handled at the root; all other requests are
# forwarded to the inner FastAPI app.
socket_app = create_socket_app(app)

# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "promptgraph.server.main:socket_app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )
