"""
FastAPI backend: drive intake conversations and serve the incident dashboard.
Each session wraps one DialogManager; the incident store and trained intent rules are shared
by every session in the process.
"""

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.dialog import DialogManager, generate_caller_id
from core.errors import DialogNotStartedError, IncidentNotFoundError
from core.models import INCIDENT_TYPES, Incident
from core.store import IncidentStore
from extractors.intent_classifier import IntentClassifier
from geo.bridge import GeoBridge, parse_coordinates
from geo.nominatim import geocoder_from_env

load_dotenv(override=True)

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("intake_api")


# -----------------------------------------------------------------------------
# Sessions
# -----------------------------------------------------------------------------
class Session:
    """Chat log + push subscribers around one DialogManager."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.messages: list[dict] = []
        self._subscribers: list[asyncio.Queue] = []
        self.manager = DialogManager(
            classifier,
            store,
            geo=geo_bridge,
            speak=lambda text: self._message("ai", text),
            display=lambda text: self._message("notice", text),
            on_state_change=lambda state: self.emit({"type": "state", "state": state.value}),
            caller_id=session_id,
        )

    def _message(self, role: str, text: str) -> None:
        msg = {"role": role, "text": text}
        self.messages.append(msg)
        self.emit({"type": "message", **msg})

    def add_user_message(self, text: str) -> None:
        self._message("user", text)

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)

    @property
    def has_subscribers(self) -> bool:
        return bool(self._subscribers)

    def emit(self, event: dict) -> None:
        for q in list(self._subscribers):
            q.put_nowait(event)

    def payload(self, since: int = 0) -> dict:
        manager = self.manager
        return {
            "session_id": self.session_id,
            "state": manager.state.value,
            "draft": manager.draft.to_dict() if manager.draft else None,
            "messages": self.messages[since:],
            "incident": manager.last_incident.to_dict() if manager.last_incident else None,
        }


def broadcast_incident(incident: Incident) -> None:
    """Push every new incident to all connected streams (dashboard feed)."""
    event = {"type": "incident", "incident": incident.to_dict()}
    for session in list(sessions.values()):
        session.emit(event)


# -----------------------------------------------------------------------------
# Store (in-memory; process lifetime)
# -----------------------------------------------------------------------------
store = IncidentStore()
store.add_listener(broadcast_incident)
classifier = IntentClassifier()
geo_bridge = GeoBridge(geocoder=geocoder_from_env())
sessions: dict[str, Session] = {}


def get_session(session_id: str) -> Session:
    if session_id not in sessions:
        logger.debug("session not_found session_id=%s", session_id)
        raise HTTPException(status_code=404, detail="Session not found")
    return sessions[session_id]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("intake api up geocoder=%s", "nominatim" if geo_bridge.can_geocode else "none")
    yield


app = FastAPI(title="Incident Intake API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -----------------------------------------------------------------------------
# Request models
# -----------------------------------------------------------------------------
class SessionRequest(BaseModel):
    caller_id: Optional[str] = None


class TranscriptRequest(BaseModel):
    text: str
    is_typed: bool = False
    is_final: bool = True  # interim transcripts are shown by the client but never drive a turn


class QuickTypeRequest(BaseModel):
    type: str


class GeoRequest(BaseModel):
    lat: float
    lng: float
    draft_token: Optional[int] = None  # token the client saw when it asked for location


class CustomIntentRequest(BaseModel):
    phrase: str
    type: str
    sub_service: Optional[str] = None


class StatusRequest(BaseModel):
    status: str


NO_CACHE_HEADERS = {"Cache-Control": "no-store, no-cache, must-revalidate", "Pragma": "no-cache"}


def _respond(content: dict, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=NO_CACHE_HEADERS)


# -----------------------------------------------------------------------------
# Session routes
# -----------------------------------------------------------------------------
@app.post("/sessions")
async def create_session(body: Optional[SessionRequest] = None):
    """Open a reporter session and deliver the greeting."""
    session_id = (body.caller_id if body else None) or generate_caller_id()
    if session_id in sessions:
        raise HTTPException(status_code=409, detail="Session already exists")
    session = Session(session_id)
    sessions[session_id] = session
    await session.manager.start()
    logger.info("session created session_id=%s", session_id)
    return _respond(session.payload(), status_code=201)


@app.get("/sessions/{session_id}")
async def get_session_state(session_id: str):
    return _respond(get_session(session_id).payload())


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    """Close a session and drop its chat log; created incidents stay in the store."""
    session = sessions.pop(session_id, None)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    session.manager.reset()
    logger.info("session deleted session_id=%s", session_id)
    return _respond({"deleted": session_id})


@app.post("/sessions/{session_id}/start")
async def start_session(session_id: str):
    session = get_session(session_id)
    session.messages.clear()
    await session.manager.start()
    return _respond(session.payload())


@app.post("/sessions/{session_id}/reset")
async def reset_session(session_id: str):
    session = get_session(session_id)
    since = len(session.messages)
    session.manager.reset()
    return _respond(session.payload(since))


@app.post("/sessions/{session_id}/transcript")
async def post_transcript(session_id: str, body: TranscriptRequest):
    """Feed one transcript event; only final transcripts advance the dialog."""
    session = get_session(session_id)
    since = len(session.messages)
    text = (body.text or "").strip()
    if not body.is_final or not text:
        return _respond(session.payload(since))
    if not session.manager.is_active:
        raise HTTPException(status_code=409, detail="No active conversation; start the session first")
    session.add_user_message(text)
    await session.manager.on_transcript(text, is_typed=body.is_typed)
    return _respond(session.payload(since))


async def _quick_type(manager: DialogManager, incident_type: str) -> None:
    if incident_type not in INCIDENT_TYPES:
        raise ValueError(f"type must be one of {', '.join(INCIDENT_TYPES)}")
    if not manager.is_active:
        await manager.start()
    await manager.quick_type(incident_type)


@app.post("/sessions/{session_id}/quick-type")
async def post_quick_type(session_id: str, body: QuickTypeRequest):
    """Shortcut button: start the call if needed, then set the type directly."""
    session = get_session(session_id)
    since = len(session.messages)
    try:
        await _quick_type(session.manager, body.type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _respond(session.payload(since))


@app.post("/sessions/{session_id}/submit")
async def post_submit_now(session_id: str):
    session = get_session(session_id)
    since = len(session.messages)
    try:
        await session.manager.submit_now()
    except DialogNotStartedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _respond(session.payload(since))


@app.post("/sessions/{session_id}/geo")
async def post_geo(session_id: str, body: GeoRequest):
    """Device location from the client; merged into the draft without advancing the dialog."""
    session = get_session(session_id)
    try:
        coords = parse_coordinates(body.lat, body.lng)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    since = len(session.messages)
    applied = session.manager.set_location_from_geo(coords, token=body.draft_token)
    return _respond({**session.payload(since), "applied": applied})


async def _forward_events(queue: asyncio.Queue, websocket: WebSocket) -> None:
    while True:
        event = await queue.get()
        await websocket.send_text(json.dumps(event))


async def _stop_forwarder(sender: asyncio.Task, session_id: str) -> None:
    sender.cancel()
    try:
        await sender
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.warning("[%s] stream forwarder failed: %s", session_id, e)


async def _handle_stream_message(session: Session, obj: dict) -> None:
    manager = session.manager
    kind = obj.get("type")
    if kind == "transcript":
        text = str(obj.get("transcript") or "").strip()
        if not obj.get("isFinal", True) or not text:
            return
        if not manager.is_active:
            raise DialogNotStartedError("No active conversation; send a start message first")
        session.add_user_message(text)
        await manager.on_transcript(text, is_typed=bool(obj.get("typed", False)))
    elif kind == "quick_type":
        await _quick_type(manager, str(obj.get("incident_type") or ""))
    elif kind == "location":
        coords = parse_coordinates(obj.get("lat"), obj.get("lng"))
        manager.set_location_from_geo(coords, token=obj.get("draft_token"))
    elif kind == "start":
        await manager.start()
    elif kind == "reset":
        manager.reset()
    elif kind == "submit":
        await manager.submit_now()
    else:
        raise ValueError(f"unknown message type: {kind!r}")


@app.websocket("/sessions/{session_id}/stream")
async def session_stream(websocket: WebSocket, session_id: str):
    """Transcript stream: client sends transcript/location/control JSON, server pushes events."""
    await websocket.accept()
    session = sessions.get(session_id)
    created_here = session is None
    if created_here:
        session = Session(session_id)
        sessions[session_id] = session
        logger.info("session created from stream session_id=%s", session_id)
    queue = session.subscribe()
    sender = asyncio.create_task(_forward_events(queue, websocket))
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                obj = json.loads(raw)
                if not isinstance(obj, dict):
                    raise ValueError("message must be a JSON object")
                await _handle_stream_message(session, obj)
            except (json.JSONDecodeError, ValueError, DialogNotStartedError) as e:
                logger.warning("[%s] stream message rejected: %s", session_id, e)
                session.emit({"type": "error", "message": str(e)})
    except WebSocketDisconnect:
        pass
    finally:
        session.unsubscribe(queue)
        await _stop_forwarder(sender, session_id)
        # A stream-created session that never started has no greeting in its log.
        if created_here and not session.messages and not session.has_subscribers:
            if sessions.get(session_id) is session:
                del sessions[session_id]
                logger.info("session dropped (never started) session_id=%s", session_id)
        logger.info("stream closed session_id=%s", session_id)


# -----------------------------------------------------------------------------
# Intent training
# -----------------------------------------------------------------------------
@app.post("/intents/custom")
async def post_custom_intent(body: CustomIntentRequest):
    try:
        rule = classifier.add_custom_intent(body.phrase, body.type, body.sub_service)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _respond({"rule": rule.to_dict(), "message": f'Trained: "{rule.phrase}" → {rule.type}'})


@app.get("/intents/custom")
async def list_custom_intents():
    return _respond({"rules": [r.to_dict() for r in classifier.custom_rules]})


# -----------------------------------------------------------------------------
# Incident dashboard
# -----------------------------------------------------------------------------
@app.get("/incidents")
async def list_incidents(type: Optional[str] = None, status: Optional[str] = None, q: Optional[str] = None):
    """Incidents oldest first, filtered by type, status and free-text search."""
    try:
        matches = store.filter(type=type or None, status=status or None, query=q)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _respond({"incidents": [i.to_dict() for i in matches], "stats": store.stats()})


@app.get("/incidents/export")
async def export_incidents():
    headers = {**NO_CACHE_HEADERS, "Content-Disposition": 'attachment; filename="incidents.json"'}
    return JSONResponse(content=store.export_all(), headers=headers)


@app.get("/incidents/{incident_id}")
async def get_incident(incident_id: str):
    try:
        return _respond(store.get(incident_id).to_dict())
    except IncidentNotFoundError:
        raise HTTPException(status_code=404, detail="Incident not found")


@app.post("/incidents/{incident_id}/status")
async def post_incident_status(incident_id: str, body: StatusRequest):
    try:
        incident = store.update_status(incident_id, body.status)
    except IncidentNotFoundError:
        raise HTTPException(status_code=404, detail="Incident not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _respond(incident.to_dict())


@app.get("/health")
async def health():
    return _respond({
        "status": "ok",
        "geocoder": "nominatim" if geo_bridge.can_geocode else "none",
        "sessions": len(sessions),
        "incidents": len(store),
    })
