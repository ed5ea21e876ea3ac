from contextlib import asynccontextmanager
from typing import Optional
from functools import partial
import json
import logging

from fastapi import APIRouter, FastAPI, Depends, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from actions import InterviewActions
from auth import get_subject_id, get_ws_subject_id
from cache import RedisCache
from config import Settings, load_settings
from database import build_engine, build_sessionmaker, init_db, get_db
from email_service import EmailService
from errors import AppError, app_error_handler, global_exception_handler
from genai_client import GenerativeClient
from logging_config import setup_logging
from schemas import QuizResultRequest, StartVoiceInterviewRequest, VoiceFeedbackRequest
from voice_bridge import VoiceCallBridge, WebSocketVoiceRemote, build_call_config, handle_voice_event

logger = logging.getLogger(__name__)

router = APIRouter()


def build_actions(app: FastAPI, db: AsyncSession) -> InterviewActions:
    settings: Settings = app.state.settings
    return InterviewActions(
        db,
        app.state.cache,
        app.state.genai,
        app.state.mailer,
        app_url=settings.app_url,
        cache_ttl=settings.assessment_cache_ttl,
    )


def get_actions(request: Request, db: AsyncSession = Depends(get_db)) -> InterviewActions:
    return build_actions(request.app, db)


@router.get("/api/health")
async def health():
    return {"status": "ok"}


# ── Voice Interviews ─────────────────────────────────────

@router.post("/api/voice-interviews")
async def start_voice_interview(
    body: StartVoiceInterviewRequest,
    subject_id: Optional[str] = Depends(get_subject_id),
    actions: InterviewActions = Depends(get_actions),
):
    return await actions.start_voice_interview(subject_id, body.topic)


@router.post("/api/voice-interviews/{assessment_id}/feedback")
async def save_voice_interview_feedback(
    assessment_id: int,
    body: VoiceFeedbackRequest,
    subject_id: Optional[str] = Depends(get_subject_id),
    actions: InterviewActions = Depends(get_actions),
):
    return await actions.save_voice_interview_feedback(subject_id, assessment_id, body.transcript)


# ── Quiz ─────────────────────────────────────────────────

@router.get("/api/quiz")
async def generate_quiz(
    subject_id: Optional[str] = Depends(get_subject_id),
    actions: InterviewActions = Depends(get_actions),
):
    return {"questions": await actions.generate_quiz(subject_id)}


@router.post("/api/quiz/results")
async def save_quiz_result(
    body: QuizResultRequest,
    subject_id: Optional[str] = Depends(get_subject_id),
    actions: InterviewActions = Depends(get_actions),
):
    return await actions.save_quiz_result(subject_id, body.questions, body.answers, body.score)


# ── Assessments ──────────────────────────────────────────

@router.get("/api/assessments")
async def list_assessments(
    subject_id: Optional[str] = Depends(get_subject_id),
    actions: InterviewActions = Depends(get_actions),
):
    return await actions.get_assessments(subject_id)


@router.get("/api/assessments/{assessment_id}")
async def get_assessment(
    assessment_id: int,
    subject_id: Optional[str] = Depends(get_subject_id),
    actions: InterviewActions = Depends(get_actions),
):
    return await actions.get_assessment(subject_id, assessment_id)


@router.get("/api/dashboard")
async def dashboard(
    subject_id: Optional[str] = Depends(get_subject_id),
    actions: InterviewActions = Depends(get_actions),
):
    return await actions.get_dashboard(subject_id)


# ── Voice Session Socket ─────────────────────────────────

@router.websocket("/ws/voice")
async def voice_session(ws: WebSocket):
    """Browser voice SDK <-> VoiceCallBridge, one bridge per connection."""
    subject_id = get_ws_subject_id(ws)
    if not subject_id:
        await ws.close(code=4401, reason="Unauthorized")
        return

    async def start_interview(topic: Optional[str]) -> dict:
        async with ws.app.state.sessionmaker() as db:
            return await build_actions(ws.app, db).start_voice_interview(subject_id, topic)

    async def save_feedback(assessment_id: int, transcript: list[dict]) -> dict:
        async with ws.app.state.sessionmaker() as db:
            return await build_actions(ws.app, db).save_voice_interview_feedback(
                subject_id, assessment_id, transcript
            )

    await ws.accept()
    bridge = VoiceCallBridge(
        WebSocketVoiceRemote(ws),
        start_interview,
        save_feedback,
        partial(build_call_config, ws.app.state.settings),
    )
    await ws.send_json({"type": "status", "status": bridge.status.value})

    try:
        while True:
            raw = await ws.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await ws.send_json({"type": "error", "error": "Invalid JSON"})
                continue
            if not isinstance(data, dict):
                await ws.send_json({"type": "error", "error": "Expected a JSON object"})
                continue

            previous = bridge.status
            try:
                reply = await handle_voice_event(bridge, data)
            except AppError as e:
                await ws.send_json({"type": "error", "error": e.message, "status": bridge.status.value})
                continue
            except WebSocketDisconnect:
                raise
            except Exception as e:
                logger.error(f"[WS] Failed to handle {data.get('event')!r}: {e}", exc_info=True)
                await ws.send_json({"type": "error", "error": str(e), "status": bridge.status.value})
                continue

            if reply:
                await ws.send_json(reply)
            if bridge.status != previous:
                await ws.send_json({"type": "status", "status": bridge.status.value})
    except WebSocketDisconnect:
        logger.info(f"[WS] Voice session closed for {subject_id} ({bridge.status.value})")


# ── App ──────────────────────────────────────────────────

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Clients are built once per process and shared by every request.
        engine = build_engine(settings.database_url)
        app.state.engine = engine
        app.state.sessionmaker = build_sessionmaker(engine)
        app.state.cache = RedisCache(settings.redis_url)
        app.state.genai = GenerativeClient(settings.gemini_api_key, settings.generation_model)
        app.state.mailer = EmailService.from_settings(settings)

        await init_db(engine, settings)
        await app.state.cache.connect()
        logger.info("Application startup: interview service")
        yield
        await app.state.cache.disconnect()
        await engine.dispose()
        logger.info("Application shutdown")

    app = FastAPI(title="Interview Prep API", lifespan=lifespan)
    app.state.settings = settings

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


app = create_app()
