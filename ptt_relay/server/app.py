"""FastAPI application: health check, audio ingestion, and CORS handling.

WHY: The recording app (and occasionally a browser page) posts audio to
this service and expects a small JSON verdict back. The routes, status
codes, and headers are the whole external contract, so they live here
and nowhere else.

HOW: ``create_app()`` builds a FastAPI app around a RelayContext
(settings, upload store, engine, notifier) created once per process.
The lifespan opens the notifier's HTTP client and runs a periodic
reaper over the upload directory. An HTTP middleware answers every
OPTIONS request and stamps CORS headers on every response; an exception
handler turns unknown paths and methods into ``{"error": "Not found"}``.

RULES:
- GET /health → 200 {"status": "ok", "service": <name>}
- POST /, /ptt, /voice → ingestion pipeline
- OPTIONS <any path> → 200 with an empty body
- Anything else → 404 {"error": "Not found"}
- Extraction or transcription failure → 200 {"success": false, "error": "Transcription failed"}
- Storage failure or unexpected error → 500 {"success": false, "error": <message>}
- The relay runs as a background task after the response; it never changes it
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from ptt_relay import __version__
from ptt_relay.config import Settings
from ptt_relay.core.models import UploadRequest
from ptt_relay.core.store import StorageError, UploadStore
from ptt_relay.notify.telegram import TelegramNotifier
from ptt_relay.server.models import HealthResponse, IngestionResponse, NotFoundResponse
from ptt_relay.server.pipeline import ExtractionError, IngestionPipeline
from ptt_relay.transcription.engine import TranscriptionEngine, WhisperEngine

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

TRANSCRIPTION_FAILED = "Transcription failed"

# Seconds between sweeps of the upload directory
REAPER_INTERVAL_S = 300


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


@dataclass
class RelayContext:
    """Everything a request handler needs, built once at start-up."""

    settings: Settings
    store: UploadStore
    engine: TranscriptionEngine
    notifier: TelegramNotifier
    pipeline: IngestionPipeline


def build_context(
    settings: Settings,
    engine: Optional[TranscriptionEngine] = None,
    notifier: Optional[TelegramNotifier] = None,
) -> RelayContext:
    store = UploadStore(settings.upload_dir, settings.upload_extension)
    engine = engine or WhisperEngine(settings)
    notifier = notifier or TelegramNotifier(
        bot_token=settings.telegram_bot_token,
        chat_id=settings.telegram_chat_id,
        api_url=settings.telegram_api_url,
        prefix=settings.notify_prefix,
    )
    pipeline = IngestionPipeline(store, engine, keep_uploads=settings.keep_uploads)
    return RelayContext(
        settings=settings,
        store=store,
        engine=engine,
        notifier=notifier,
        pipeline=pipeline,
    )


def _json(model, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        content=model.model_dump(exclude_none=True),
        status_code=status_code,
    )


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[TranscriptionEngine] = None,
    notifier: Optional[TelegramNotifier] = None,
) -> FastAPI:
    """Create the webhook app.

    WHY: Factory function lets tests inject settings bound to a temp
    directory, a stub engine, and a mock-transport notifier, and keeps
    importing this module free of side effects.

    RULES:
    - settings default to Settings.from_env()
    - The upload directory is created here, before the first request
    """
    settings = settings or Settings.from_env()
    ctx = build_context(settings, engine=engine, notifier=notifier)

    async def _periodic_cleanup() -> None:
        """Reap leftover uploads every few minutes."""
        while True:
            await asyncio.sleep(REAPER_INTERVAL_S)
            await asyncio.to_thread(ctx.store.cleanup_expired, settings.upload_ttl_s)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the relay client and start the reaper; undo both on shutdown."""
        async with ctx.notifier:
            task = asyncio.create_task(_periodic_cleanup())
            try:
                yield
            finally:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    app = FastAPI(
        lifespan=lifespan,
        title="PTT Transcription Relay",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.relay = ctx

    @app.middleware("http")
    async def cors(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)
        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Unknown paths and wrong methods on known paths look the same to clients
        if exc.status_code in (404, 405):
            return _json(NotFoundResponse(), status_code=404)
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)

    @app.get("/health")
    async def health() -> JSONResponse:
        return _json(HealthResponse(status="ok", service=settings.service_name))

    async def ingest(request: Request, background_tasks: BackgroundTasks) -> JSONResponse:
        upload = UploadRequest(
            content_type=request.headers.get("content-type", ""),
            raw_body=await request.body(),
        )
        try:
            result = await ctx.pipeline.run(upload)
        except ExtractionError as exc:
            logger.warning("Rejected upload: %s", exc)
            return _json(IngestionResponse(success=False, error=TRANSCRIPTION_FAILED))
        except StorageError as exc:
            return _json(IngestionResponse(success=False, error=str(exc)), status_code=500)
        except Exception as exc:
            logger.exception("Ingestion failed")
            return _json(IngestionResponse(success=False, error=str(exc)), status_code=500)

        if not result.succeeded:
            return _json(IngestionResponse(success=False, error=TRANSCRIPTION_FAILED))

        if ctx.notifier.enabled:
            background_tasks.add_task(ctx.notifier.notify, result.text)
        return _json(IngestionResponse(success=True, transcription=result.text))

    for path in ("/", "/ptt", "/voice"):
        app.add_api_route(path, ingest, methods=["POST"])

    return app


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_api(settings: Optional[Settings] = None) -> None:
    """Entry point for the ptt-relay-api console script."""
    import uvicorn

    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    logger.info("PTT webhook listening on %s:%d", settings.host, settings.port)
    logger.info("  POST /ptt or /voice  - upload audio for transcription")
    logger.info("  GET  /health         - health check")
    logger.info("Whisper model: %s", settings.whisper_model)
    if not settings.telegram_bot_token:
        logger.warning("TELEGRAM_BOT_TOKEN not set; Telegram notifications disabled")
    elif not settings.telegram_chat_id:
        logger.warning("TELEGRAM_CHAT_ID not set; Telegram notifications disabled")

    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
