"""FastAPI backend for the Samriddhi Sahayak assistant."""

import asyncio
import base64
import binascii
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import BaseModel

from sahayak.audio import AudioCaptureController, list_input_devices
from sahayak.config import Config
from sahayak.errors import AssistantError, DeviceUnavailable, GatewayError, PermissionDenied, Timeout
from sahayak.events import EventHub
from sahayak.gateways import AssistantGateway, create_gateway
from sahayak.languages import Language, label_for, parse_language
from sahayak.models import EncodedClip, SchemeCandidate
from sahayak.session import AssistantSession, SessionState
from sahayak.transcript import export_filename

logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 15.0

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable buffering for nginx
}


# Request models
class ChatRequest(BaseModel):
    message: str


class LanguageRequest(BaseModel):
    language: str


class GuidanceBody(BaseModel):
    title: str
    procedure: str


class NotificationBody(BaseModel):
    title: str
    message: str
    type: Literal["INFO", "SUCCESS", "ALERT"] = "INFO"


class SchemeBody(BaseModel):
    id: str
    name: str
    description: str = ""


class SearchRequest(BaseModel):
    query: str
    schemes: List[SchemeBody]


class DocumentCheckRequest(BaseModel):
    image_base64: str
    mime_type: str = "image/jpeg"
    scheme_name: str
    criteria: List[str] = []
    language: Optional[str] = None


class SuggestRequest(BaseModel):
    profile: str


class TranslateRequest(BaseModel):
    text: str
    target_language: str


def _status_for(exc: AssistantError) -> int:
    if isinstance(exc, PermissionDenied):
        return 403
    if isinstance(exc, DeviceUnavailable):
        return 409
    if isinstance(exc, Timeout):
        return 504
    if isinstance(exc, GatewayError):
        return 502
    return 500


def _language(value: str) -> Language:
    try:
        return parse_language(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _sse_stream(request: Request, subscribe: Callable[[Callable[[Any], None]], Callable[[], None]], first=None):
    """Server-Sent Events fed by an observer subscription, with heartbeats while idle."""

    async def event_generator():
        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = subscribe(queue.put_nowait)
        if first is not None:
            queue.put_nowait(first)
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_SECONDS)
                    yield f"data: {json.dumps(event, ensure_ascii=False)}\n\n"
                except asyncio.TimeoutError:
                    # Send heartbeat to keep connection alive
                    yield ": heartbeat\n\n"
        finally:
            unsubscribe()

    return StreamingResponse(event_generator(), media_type="text/event-stream", headers=SSE_HEADERS)


def create_app(
    gateway: Optional[AssistantGateway] = None,
    capture: Optional[AudioCaptureController] = None,
    output_factory=None,
    hub: Optional[EventHub] = None,
) -> FastAPI:
    """Build the application around one assistant session.

    Args:
        gateway: Remote assistant service (defaults to Config.GATEWAY_TYPE)
        capture: Microphone controller (defaults to the system microphone)
        output_factory: Speaker factory for live playback
        hub: Event hub shared with the rest of the portal

    Returns:
        FastAPI application
    """
    gateway = gateway or create_gateway(Config.GATEWAY_TYPE)
    hub = hub or EventHub()
    session = AssistantSession(
        gateway,
        capture=capture,
        language=Config.DEFAULT_LANGUAGE,
        output_factory=output_factory,
    )
    session.attach(hub)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"[SERVER] assistant ready (gateway={type(gateway).__name__})")
        yield
        await session.close()
        logger.info("[SERVER] assistant session released")

    app = FastAPI(title="Samriddhi Sahayak", lifespan=lifespan)
    app.state.session = session
    app.state.gateway = gateway
    app.state.hub = hub

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AssistantError)
    async def assistant_error_handler(request: Request, exc: AssistantError):
        logger.warning(f"[SERVER] {request.url.path} failed: {type(exc).__name__}: {exc}")
        return JSONResponse(
            status_code=_status_for(exc),
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    def require_open():
        if not session.is_open:
            raise HTTPException(status_code=409, detail="Assistant panel is closed")

    # ---- assistant panel

    @app.post("/assistant/open")
    async def assistant_open():
        """Open the panel through the hub, as any portal feature would."""
        await hub.request_open()
        return session.snapshot()

    @app.post("/assistant/close")
    async def assistant_close():
        await session.close()
        return session.snapshot()

    @app.get("/assistant/state")
    async def assistant_state():
        return session.snapshot()

    @app.post("/assistant/message")
    async def assistant_message(request: ChatRequest):
        """Send a typed message and wait for the assistant's reply."""
        require_open()
        if not request.message.strip():
            raise HTTPException(status_code=400, detail="Message is empty")
        if session.state not in (SessionState.TEXT_IDLE, SessionState.TEXT_AWAITING_RESPONSE):
            raise HTTPException(status_code=409, detail=f"Cannot send a message in state {session.state.value}")
        entry = await session.send_text(request.message)
        return {
            "reply": entry.to_dict() if entry else None,
            "state": session.snapshot(),
        }

    @app.post("/assistant/recording/start")
    async def recording_start():
        require_open()
        if session.state not in (SessionState.TEXT_IDLE, SessionState.TEXT_AWAITING_RESPONSE):
            raise HTTPException(status_code=409, detail=f"Cannot record in state {session.state.value}")
        if not await session.start_text_recording():
            raise session.last_error or HTTPException(status_code=409, detail="Recording did not start")
        return session.snapshot()

    @app.post("/assistant/recording/stop")
    async def recording_stop():
        require_open()
        if session.state != SessionState.TEXT_RECORDING:
            raise HTTPException(status_code=409, detail="No recording in progress")
        entry = await session.stop_text_recording()
        return {
            "reply": entry.to_dict() if entry else None,
            "state": session.snapshot(),
        }

    @app.post("/assistant/recording/cancel")
    async def recording_cancel():
        await session.cancel_text_recording()
        return session.snapshot()

    @app.post("/assistant/mode/voice")
    async def mode_voice():
        require_open()
        await session.switch_to_voice()
        return session.snapshot()

    @app.post("/assistant/mode/text")
    async def mode_text():
        require_open()
        await session.switch_to_text()
        return session.snapshot()

    @app.post("/assistant/guidance")
    async def guidance_start(request: GuidanceBody):
        """Start a guided voice call, e.g. from the helpline directory."""
        await hub.request_guidance(request.title, request.procedure)
        return session.snapshot()

    @app.delete("/assistant/guidance")
    async def guidance_dismiss():
        session.dismiss_guidance()
        return session.snapshot()

    @app.post("/assistant/language")
    async def assistant_language(request: LanguageRequest):
        session.update_language(_language(request.language))
        return session.snapshot()

    @app.get("/assistant/transcript")
    async def assistant_transcript():
        return {"entries": session.transcript.to_list()}

    @app.get("/assistant/transcript/export")
    async def transcript_export():
        """Download the chat log as plain text."""
        return PlainTextResponse(
            session.export_transcript(),
            headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
        )

    @app.get("/assistant/transcript/stream")
    async def transcript_stream(request: Request):
        """Stream transcript entries and state changes via Server-Sent Events."""
        return _sse_stream(request, session.subscribe, first={"type": "state", **session.snapshot()})

    # ---- portal notifications

    @app.post("/notifications")
    async def notifications_push(request: NotificationBody):
        notification = await hub.push_notification(request.title, request.message, request.type)
        return notification.to_dict()

    @app.get("/notifications/stream")
    async def notifications_stream(request: Request):
        def subscribe(put):
            return hub.subscribe_notifications(lambda n: put(n.to_dict()))

        return _sse_stream(request, subscribe)

    # ---- one-shot helpers for the schemes and document pages

    @app.post("/schemes/search")
    async def schemes_search(request: SearchRequest):
        candidates = [SchemeCandidate(id=s.id, name=s.name, description=s.description) for s in request.schemes]
        ids = await gateway.semantic_search(request.query, candidates)
        return {"ids": ids}

    @app.post("/schemes/verify-document")
    async def schemes_verify_document(request: DocumentCheckRequest):
        try:
            data = base64.b64decode(request.image_base64, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=400, detail="image_base64 is not valid base64")
        if not data:
            raise HTTPException(status_code=400, detail="Image is empty")
        language = _language(request.language) if request.language else session.language
        verdict = await gateway.check_document_eligibility(
            EncodedClip(data=data, mime_type=request.mime_type),
            request.scheme_name,
            request.criteria,
            language,
        )
        return verdict.to_dict()

    @app.post("/schemes/suggest")
    async def schemes_suggest(request: SuggestRequest):
        suggestions = await gateway.suggest_schemes(request.profile)
        return {"suggestions": [s.to_dict() for s in suggestions]}

    @app.post("/translate")
    async def translate(request: TranslateRequest):
        target = _language(request.target_language)
        text = await gateway.translate(request.text, target)
        return {"text": text, "language": target.value}

    @app.get("/languages")
    async def languages():
        return {"languages": [{"code": l.value, "label": label_for(l)} for l in Language]}

    @app.get("/audio/devices")
    async def audio_devices():
        return list_input_devices()

    return app


app = create_app()
