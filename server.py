"""FastAPI backend for the AIVA form-assist flow and document assistant."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from aiva.models.claim_form import Attachment, TRAVEL_CLAIM_SCHEMA
from aiva.orchestration.controller import ConversationController
from aiva.orchestration.session import FormSession
from aiva.plugins.document_assistant import DocumentAssistantPlugin, NO_TEXT, UNREADABLE
from aiva.storage.claim_store import ClaimRecordStore
from aiva.storage.history_store import ChatHistoryStore
from aiva.storage.submission import MultipartPayload
from aiva.utils.bedrock_client import BedrockClient
from aiva.utils.config import Config
from aiva.utils.logging import setup_logging

logger = logging.getLogger(__name__)

APP_TITLE = "AIVA - Travel Claim Form Assist"

MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "10"))
MAX_TOTAL_MB = int(os.getenv("MAX_TOTAL_MB", "50"))
MAX_FILES_PER_TYPE = int(os.getenv("MAX_FILES_PER_TYPE", "10"))
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "3600"))
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "500"))
UPLOAD_LIMIT_BYTES = MAX_TOTAL_MB * 1024 * 1024
LIST_LIMIT = 100


@dataclass
class Services:
    """Collaborators shared by all requests."""

    controller: ConversationController
    assistant: DocumentAssistantPlugin
    store: ClaimRecordStore
    history: ChatHistoryStore
    field_aliases: Optional[Dict[str, str]] = None
    call_timeout: float = 30.0


class SessionRequest(BaseModel):
    guided: Optional[bool] = None


class TurnRequest(BaseModel):
    text: str = ""


class ProcessTextRequest(BaseModel):
    text: str = ""
    mode: str = "chat"
    targetLang: Optional[str] = None
    question: str = ""


app = FastAPI(title=APP_TITLE)

sessions: Dict[str, FormSession] = {}
sessions_lock = threading.Lock()

_services: Optional[Services] = None
_services_lock = threading.Lock()


def _build_services() -> Services:
    config = Config.load()
    setup_logging(config.logging.level, config.logging.format, config.logging.file or None)

    bedrock = BedrockClient.from_config(config)
    store = ClaimRecordStore.from_config(config)
    controller = ConversationController.from_config(config, bedrock=bedrock, store=store)
    assistant = DocumentAssistantPlugin(
        bedrock=bedrock,
        pdf_extractor=controller.extractor.documents.pdf,
        max_chars=config.form_assist.max_document_chars,
        default_target_language=config.form_assist.default_target_language,
    )
    return Services(
        controller=controller,
        assistant=assistant,
        store=store,
        history=ChatHistoryStore(config.storage.history_path),
        field_aliases=config.form_assist.field_aliases,
        call_timeout=config.form_assist.call_timeout_seconds,
    )


def configure_services(services: Optional[Services]) -> None:
    """Install collaborators (tests pass fakes; None rebuilds from config on next use)."""
    global _services
    with _services_lock:
        _services = services
    with sessions_lock:
        sessions.clear()


def get_services() -> Services:
    global _services
    with _services_lock:
        if _services is None:
            _services = _build_services()
        return _services


def _read_upload(file: UploadFile) -> Attachment:
    data = file.file.read()
    if len(data) == 0:
        raise HTTPException(status_code=400, detail=f"{file.filename} is empty.")
    return Attachment(
        filename=file.filename or "upload",
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )


def _validate_uploads(groups: Dict[str, List[Attachment]]) -> None:
    total_size = 0
    for key, items in groups.items():
        if len(items) > MAX_FILES_PER_TYPE:
            raise HTTPException(
                status_code=400,
                detail=f"Too many files for {key}. Max {MAX_FILES_PER_TYPE} allowed.",
            )
        for item in items:
            if item.size > MAX_FILE_SIZE_MB * 1024 * 1024:
                raise HTTPException(
                    status_code=400,
                    detail=(
                        f"{item.filename} exceeds the per-file limit "
                        f"of {MAX_FILE_SIZE_MB} MB."
                    ),
                )
            total_size += item.size
    if total_size > UPLOAD_LIMIT_BYTES:
        raise HTTPException(
            status_code=400,
            detail=(
                "Combined upload size exceeds limit "
                f"of {MAX_TOTAL_MB} MB."
            ),
        )


def _draft_uploads(session: FormSession, category: Optional[str], attachment: Attachment) -> Dict[str, List[Attachment]]:
    """Files the draft would hold after this upload, by category."""
    groups = {
        spec.key: session.draft.attachments(spec.key)
        for spec in TRAVEL_CLAIM_SCHEMA.file_fields
    }
    groups.setdefault(category or "file", []).append(attachment)
    return groups


def _prune_sessions() -> None:
    """Drop idle sessions, then the least recently used ones over MAX_SESSIONS (caller holds the lock)."""
    busy = {sid for sid, s in sessions.items() if s.lock.locked() or s.state.loading}
    expired = [
        sid for sid, s in sessions.items()
        if sid not in busy and s.idle_seconds() > SESSION_TTL_SECONDS
    ]
    for sid in expired:
        del sessions[sid]

    # Leave room for the session being registered
    overflow = len(sessions) + 1 - MAX_SESSIONS
    evicted = []
    if overflow > 0:
        idle_first = sorted(
            (s for sid, s in sessions.items() if sid not in busy),
            key=lambda s: s.last_active,
        )
        for s in idle_first[:overflow]:
            del sessions[s.session_id]
            evicted.append(s.session_id)

    if expired or evicted:
        logger.info(f"Pruned sessions: {len(expired)} expired, {len(evicted)} evicted, {len(sessions)} left")


def _register_session(session: FormSession) -> FormSession:
    with sessions_lock:
        _prune_sessions()
        sessions[session.session_id] = session
    return session


def _get_session(session_id: str) -> FormSession:
    with sessions_lock:
        session = sessions.get(session_id)
        if session is not None and session.idle_seconds() > SESSION_TTL_SECONDS and not session.lock.locked():
            del sessions[session_id]
            session = None
        if session is not None:
            session.touch()
    if not session:
        raise HTTPException(status_code=404, detail="Session not found.")
    return session


def _turn_payload(session: FormSession, turn) -> Dict[str, Any]:
    return {
        "turn": turn.to_dict() if turn is not None else None,
        "session": session.to_dict(),
    }


def _assistant_response(result: Dict[str, str]) -> JSONResponse:
    if "content" in result:
        return JSONResponse(result)
    status = 400 if result.get("error") in (NO_TEXT, UNREADABLE) else 500
    return JSONResponse(result, status_code=status)


# Form assist


@app.post("/api/form-assist/sessions")
async def create_session(body: Optional[SessionRequest] = None) -> JSONResponse:
    services = get_services()
    session = _register_session(FormSession.create(extra_aliases=services.field_aliases))
    turn = None
    if body is not None and body.guided is not None:
        turn = services.controller.start(session, guided=body.guided)
    logger.info(f"Created form-assist session {session.session_id}")
    return JSONResponse(jsonable_encoder(_turn_payload(session, turn)), status_code=201)


@app.post("/api/form-assist/sessions/{session_id}/turn")
async def session_turn(session_id: str, body: TurnRequest) -> JSONResponse:
    session = _get_session(session_id)
    async with session.lock:
        turn = await get_services().controller.handle_turn(session, body.text)
    return JSONResponse(jsonable_encoder(_turn_payload(session, turn)))


@app.post("/api/form-assist/sessions/{session_id}/file")
async def session_file(
    session_id: str,
    file: UploadFile = File(...),
    category: Optional[str] = Form(default=None),
) -> JSONResponse:
    session = _get_session(session_id)
    if category and category not in {spec.key for spec in TRAVEL_CLAIM_SCHEMA.file_fields}:
        raise HTTPException(status_code=400, detail=f"Unknown attachment category: {category}.")
    attachment = _read_upload(file)

    async with session.lock:
        _validate_uploads(_draft_uploads(session, category, attachment))
        turn = await get_services().controller.handle_file(session, attachment, category=category or None)
    return JSONResponse(jsonable_encoder(_turn_payload(session, turn)))


@app.post("/api/form-assist/sessions/{session_id}/submit")
async def session_submit(session_id: str) -> JSONResponse:
    session = _get_session(session_id)
    async with session.lock:
        turn = await get_services().controller.submit(session)
    status = 200 if turn.claim_id else 400
    return JSONResponse(jsonable_encoder(_turn_payload(session, turn)), status_code=status)


@app.post("/api/form-assist/sessions/{session_id}/reset")
async def session_reset(session_id: str) -> JSONResponse:
    session = _get_session(session_id)
    async with session.lock:
        turn = get_services().controller.reset(session)
    return JSONResponse(jsonable_encoder(_turn_payload(session, turn)))


@app.get("/api/form-assist/sessions/{session_id}/draft")
async def session_draft(session_id: str) -> JSONResponse:
    session = _get_session(session_id)
    return JSONResponse(jsonable_encoder(session.to_dict()))


# Document assistant


@app.post("/api/ai/analyze")
async def analyze_file(
    file: Optional[UploadFile] = File(default=None),
    mode: str = Form(default="chat"),
    question: str = Form(default=""),
    targetLang: Optional[str] = Form(default=None),
) -> JSONResponse:
    if file is None:
        return JSONResponse({"error": "No file provided."}, status_code=400)
    attachment = _read_upload(file)
    _validate_uploads({"file": [attachment]})
    result = await get_services().assistant.analyze_file(
        attachment, mode=mode, question=question, target_lang=targetLang
    )
    return _assistant_response(result)


@app.post("/api/ai/process-text")
async def process_text(body: ProcessTextRequest) -> JSONResponse:
    if not body.text.strip():
        return JSONResponse({"error": NO_TEXT}, status_code=400)
    result = await get_services().assistant.process_text(
        body.text, mode=body.mode, question=body.question, target_lang=body.targetLang
    )
    return _assistant_response(result)


# Claims


@app.post("/api/travel-claim")
async def submit_travel_claim(request: Request) -> JSONResponse:
    services = get_services()
    form = await request.form()

    payload = MultipartPayload()
    uploads: Dict[str, List[Attachment]] = {}
    for key, value in form.multi_items():
        if isinstance(value, str):
            payload.fields[key] = value
            continue
        data = await value.read()
        if not data:
            continue
        attachment = Attachment(
            filename=value.filename or "upload",
            content_type=value.content_type or "application/octet-stream",
            data=data,
        )
        uploads.setdefault(key, []).append(attachment)
        payload.files.append((key, attachment))

    _validate_uploads(uploads)
    try:
        result = await asyncio.wait_for(
            asyncio.to_thread(services.store.submit, payload),
            timeout=services.call_timeout,
        )
    except asyncio.TimeoutError:
        return JSONResponse({"error": "The submission timed out."}, status_code=504)

    if "error" in result:
        return JSONResponse(result, status_code=500)
    return JSONResponse(result)


@app.get("/api/travel-claim/list")
async def list_travel_claims() -> JSONResponse:
    try:
        rows = await asyncio.to_thread(get_services().store.list_records, LIST_LIMIT)
    except OSError as e:
        logger.error(f"Failed to list claims: {str(e)}")
        return JSONResponse({"error": str(e)}, status_code=500)
    return JSONResponse(jsonable_encoder({"rows": rows}))


# Chat history


@app.get("/api/ai/history")
async def get_history() -> JSONResponse:
    messages, error = get_services().history.load()
    body: Dict[str, Any] = {"messages": messages}
    if error:
        body["error"] = error
    return JSONResponse(body)


@app.post("/api/ai/history")
async def save_history(request: Request) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        body = {}
    messages = body.get("messages") if isinstance(body, dict) else None
    try:
        get_services().history.save(messages if isinstance(messages, list) else [])
    except OSError as e:
        logger.error(f"Failed to save chat history: {str(e)}")
        return JSONResponse({"ok": False, "error": str(e)}, status_code=500)
    return JSONResponse({"ok": True})


@app.get("/healthz")
async def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}
