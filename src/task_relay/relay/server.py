"""Local HTTP surface for the relay.

Lets the page-side scripts reach the dispatcher and risk monitor over
loopback HTTP:

    POST /api/messages     protocol message -> response envelope (204 if unknown)
    POST /api/captures     page capture post -> REQUEST_TASK (204 if not a product)
    POST /api/navigation   navigation event -> risk verdict
    GET  /api/health       liveness
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, Request, Response, status
from pydantic import BaseModel, Field

from ..guardian.risk_monitor import NavigationEvent, NavigationPhase, RiskMonitor
from .capture import capture_to_message
from .dispatcher import MessageDispatcher
from .protocol import Message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["relay"])


# ── Pydantic Models ──────────────────────────────────────────────────


class MessageBody(BaseModel):
    type: str = ""
    data: Optional[Any] = None


class CaptureBody(BaseModel):
    url: str = Field(..., min_length=1)
    data: Optional[Any] = None
    extraInfo: Dict[str, Any] = Field(default_factory=dict)


class NavigationBody(BaseModel):
    url: str
    phase: NavigationPhase = NavigationPhase.COMPLETED


# ── Dependencies ─────────────────────────────────────────────────────


def _dispatcher(request: Request) -> MessageDispatcher:
    return request.app.state.dispatcher


def _monitor(request: Request) -> RiskMonitor:
    return request.app.state.monitor


# ── Routes ───────────────────────────────────────────────────────────


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post("/messages")
async def post_message(body: MessageBody, request: Request):
    """Dispatch one protocol message and return its envelope."""
    message = Message.from_dict(body.model_dump())
    result = await _dispatcher(request).dispatch(message)
    if result is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return result.to_dict()


@router.post("/captures")
async def post_capture(body: CaptureBody, request: Request):
    """Forward a product capture as a task submission."""
    message = capture_to_message(body.model_dump())
    if message is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    result = await _dispatcher(request).dispatch(message)
    return result.to_dict()


@router.post("/navigation")
async def post_navigation(body: NavigationBody, request: Request):
    """Run the risk monitor over a navigation event."""
    monitor = _monitor(request)
    disabled = await monitor.on_navigation(
        NavigationEvent(url=body.url, phase=body.phase)
    )
    return {
        "url": body.url,
        "risk": monitor.is_risk(body.url),
        "disabled": disabled,
    }


def create_app(dispatcher: MessageDispatcher, monitor: RiskMonitor) -> FastAPI:
    """Build the FastAPI app around already-constructed components."""
    app = FastAPI(title="Task Relay", docs_url=None, redoc_url=None)
    app.state.dispatcher = dispatcher
    app.state.monitor = monitor
    app.include_router(router)

    @app.on_event("shutdown")
    async def _close_dispatcher():
        await dispatcher.aclose()

    return app
