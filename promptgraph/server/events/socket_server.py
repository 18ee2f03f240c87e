"""
Socket.IO server broadcasting graph events to connected editors.

Uses python-socketio in ASGI mode so it can wrap FastAPI.
`create_socket_app(fastapi_app)` returns the composite ASGI application to
pass to uvicorn.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Set

import socketio

from promptgraph.core.GraphService import GraphService

from .event_types import GraphEvent

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Socket.IO instance (async, ASGI mode)
# ---------------------------------------------------------------------------

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*",
    logger=False,
    engineio_logger=False,
)


# ---------------------------------------------------------------------------
# Graph event fan-out: GraphService listener → Socket.IO emit
# ---------------------------------------------------------------------------

# Emit tasks in flight; the loop only keeps weak references to them.
_pending: Set["asyncio.Task[Any]"] = set()


def _emit_done(task: "asyncio.Task[Any]") -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Failed to broadcast graph event", exc_info=exc)


def _on_graph_event(event: GraphEvent) -> None:
    """
    Called synchronously by GraphService after each mutation.
    We schedule an async emit on the running event loop.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # mutation made outside the server loop (tests, scripts)
        return
    task = loop.create_task(sio.emit("graph", event))
    _pending.add(task)
    task.add_done_callback(_emit_done)


def attach_graph_service(service: GraphService) -> None:
    service.subscribe(_on_graph_event)


# ---------------------------------------------------------------------------
# Socket.IO lifecycle events
# ---------------------------------------------------------------------------

@sio.event
async def connect(sid: str, environ: dict) -> None:
    logger.info(f"editor connected: {sid}")


@sio.event
async def disconnect(sid: str) -> None:
    logger.info(f"editor disconnected: {sid}")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_socket_app(fastapi_app: Any) -> socketio.ASGIApp:
    """Wrap *fastapi_app* inside a Socket.IO ASGI application."""
    return socketio.ASGIApp(sio, other_asgi_app=fastapi_app)
