"""Core request handling: data model, body extraction, and upload storage."""

from ptt_relay.core.models import (
    EngineStage,
    ExtractedAudio,
    StoredRecording,
    TranscriptionResult,
    UploadRequest,
)
from ptt_relay.core.multipart import extract
from ptt_relay.core.store import StorageError, UploadStore

__all__ = [
    "EngineStage",
    "ExtractedAudio",
    "StorageError",
    "StoredRecording",
    "TranscriptionResult",
    "UploadRequest",
    "UploadStore",
    "extract",
]
