"""Ingestion pipeline: extract → store → transcribe for one POST body.

WHY: The HTTP handler should only shape responses. Keeping the ordered
stages in one place makes the error taxonomy (what is a soft
"could not transcribe" and what is a server fault) explicit and lets
the pipeline be tested without HTTP.

HOW: ``IngestionPipeline.run()`` takes an UploadRequest and returns a
TranscriptionResult. Extraction failures raise ExtractionError, disk
failures raise StorageError; engine failures come back as an
unsuccessful result. The stored recording is removed afterwards unless
``keep_uploads`` is set.

RULES:
- Storage strictly precedes transcription
- Only the first non-empty extracted part is used
- No state is shared between runs except the upload directory
- Store and delete run off the event loop (asyncio.to_thread)
"""

from __future__ import annotations

import asyncio
import logging

from ptt_relay.core.models import ExtractedAudio, TranscriptionResult, UploadRequest
from ptt_relay.core.multipart import extract, is_multipart
from ptt_relay.core.store import UploadStore
from ptt_relay.transcription.engine import TranscriptionEngine

logger = logging.getLogger(__name__)


class ExtractionError(ValueError):
    """Raised when a request body contains no usable audio."""


def extract_audio(request: UploadRequest) -> ExtractedAudio:
    """Pick the audio payload out of a request body.

    Raises:
        ExtractionError: the body is empty, or a declared multipart
            boundary matched no non-empty part.
    """
    parts = extract(request.raw_body, request.content_type)
    audio = next((p for p in parts if p), b"")
    if not audio:
        raise ExtractionError("No audio content in request body")

    if is_multipart(request.content_type) and audio is not request.raw_body:
        logger.info("Extracted %d bytes from multipart", len(audio))
    return ExtractedAudio(data=audio)


class IngestionPipeline:
    def __init__(
        self,
        store: UploadStore,
        engine: TranscriptionEngine,
        keep_uploads: bool = False,
    ) -> None:
        self.store = store
        self.engine = engine
        self.keep_uploads = keep_uploads

    async def run(self, request: UploadRequest) -> TranscriptionResult:
        logger.info("Received PTT audio: %d bytes", len(request.raw_body))
        audio = extract_audio(request)

        # Blocking disk I/O stays off the event loop
        recording = await asyncio.to_thread(
            self.store.store, audio.data, int(request.received_at * 1000)
        )
        try:
            result = await self.engine.transcribe(recording.path)
        finally:
            if not self.keep_uploads:
                await asyncio.to_thread(self.store.delete, recording)

        if result.succeeded:
            stage = result.engine_used.value if result.engine_used else "unknown"
            logger.info("Transcription (%s pass): %r", stage, result.text)
        else:
            logger.warning("Transcription failed for %s", recording.path.name)
        return result
