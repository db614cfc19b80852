from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

import floorplan.config as cfg
from floorplan.analyzer import AnalyzerService, validate_image
from floorplan.chat_service import ChatService
from floorplan.config import Settings
from floorplan.errors import FloorPlanError, RequestTimeout, ValidationError
from floorplan.logging import configure_logging, json_logger_middleware
from floorplan.speech import SpeechService

from api.models import AnalyzeResponse, ChatRequest, ChatResponse, ErrorResponse, SpeakRequest

logger = logging.getLogger(__name__)


class ServiceRegistry:
    """Services built on first use from the app's settings, or injected."""

    def __init__(
        self,
        settings: Settings,
        analyzer: Optional[AnalyzerService] = None,
        chat: Optional[ChatService] = None,
        speech: Optional[SpeechService] = None,
    ) -> None:
        self.settings = settings
        self._analyzer = analyzer
        self._chat = chat
        self._speech = speech

    @property
    def analyzer(self) -> AnalyzerService:
        if self._analyzer is None:
            self._analyzer = AnalyzerService(settings=self.settings)
        return self._analyzer

    @property
    def chat(self) -> ChatService:
        if self._chat is None:
            self._chat = ChatService(settings=self.settings)
        return self._chat

    @property
    def speech(self) -> SpeechService:
        if self._speech is None:
            self._speech = SpeechService(settings=self.settings)
        return self._speech


def get_registry(request: Request) -> ServiceRegistry:
    return request.app.state.services


def get_analyzer(registry: ServiceRegistry = Depends(get_registry)) -> AnalyzerService:
    return registry.analyzer


def get_chat_service(registry: ServiceRegistry = Depends(get_registry)) -> ChatService:
    return registry.chat


def get_speech_service(registry: ServiceRegistry = Depends(get_registry)) -> SpeechService:
    return registry.speech


def _public_message(settings: Settings, status: int, message: str) -> str:
    """Hide internal detail of server-side failures outside development."""
    if status >= 500 and not settings.is_development:
        return cfg.GENERIC_ERROR_MESSAGE
    return message


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content=ErrorResponse(error=message).model_dump())


# ------------ Routes ------------

router = APIRouter()


@router.get("/health")
def health(request: Request) -> dict:
    settings: Settings = request.app.state.settings
    return {"ok": True, "service": settings.APP_NAME, "version": settings.APP_VERSION}


@router.post("/api/analyze", response_model=AnalyzeResponse)
async def analyze(request: Request, analyzer: AnalyzerService = Depends(get_analyzer)):
    if "multipart/form-data" not in (request.headers.get("content-type") or ""):
        raise HTTPException(status_code=400, detail="Content type must be multipart/form-data")

    form = await request.form()
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise HTTPException(status_code=400, detail="No file uploaded")

    data = await upload.read()
    validate_image(upload.content_type, len(data))
    request.state.image_type = upload.content_type
    request.state.image_bytes = len(data)
    logger.info(
        "Processing file: %s",
        {
            "name": upload.filename,
            "type": upload.content_type,
            "size": f"{len(data) / 1024 / 1024:.2f}MB",
        },
    )

    timeout = request.app.state.settings.REQUEST_TIMEOUT_MS / 1000.0
    try:
        outcome = await asyncio.wait_for(
            analyzer.analyze_with_status(data, upload.content_type), timeout=timeout
        )
    except asyncio.TimeoutError:
        raise RequestTimeout("Analysis timeout")
    request.state.degraded = outcome.degraded
    return {"parsedAnalysis": outcome.analysis.model_dump(mode="json")}


@router.post("/api/chat", response_model=ChatResponse)
async def chat(
    payload: ChatRequest, request: Request, service: ChatService = Depends(get_chat_service)
):
    if not (payload.message or "").strip():
        raise HTTPException(status_code=400, detail="Message is required")
    if payload.context is None:
        raise HTTPException(status_code=400, detail="Context is required")

    request.state.history_len = len(payload.context.previous_messages)
    try:
        text = await service.reply(payload.message, payload.context)
    except ValidationError:
        raise
    except Exception:
        logger.exception("Chat API error")
        return _error(500, "Failed to process chat message.")
    return {"text": text}


@router.post("/api/tts")
async def tts(
    payload: SpeakRequest, request: Request, service: SpeechService = Depends(get_speech_service)
):
    try:
        audio = await service.synthesize(payload.text or "")
    except Exception:
        logger.exception("TTS API error")
        return _error(500, "Failed to generate speech")
    request.state.audio_bytes = len(audio)
    return Response(
        content=audio,
        media_type="audio/wav",
        headers={"Content-Length": str(len(audio))},
    )


# ------------ Exception Handlers ------------


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail or "HTTP error"))


async def floorplan_error_handler(request: Request, exc: FloorPlanError):
    status = exc.status or 500
    return _error(status, _public_message(request.app.state.settings, status, exc.message))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error(400, "Invalid request body")


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Error processing request")
    return _error(500, _public_message(request.app.state.settings, 500, str(exc)))


def create_app(
    settings: Optional[Settings] = None,
    *,
    analyzer: Optional[AnalyzerService] = None,
    chat_service: Optional[ChatService] = None,
    speech_service: Optional[SpeechService] = None,
) -> FastAPI:
    settings = settings or cfg.get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)
    app.state.settings = settings
    app.state.services = ServiceRegistry(
        settings, analyzer=analyzer, chat=chat_service, speech=speech_service
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(json_logger_middleware())

    app.include_router(router)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(FloorPlanError, floorplan_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    return app


app = create_app()
