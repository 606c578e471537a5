"""Per-request dataclasses for the ingestion pipeline.

WHY: Each stage of the pipeline (extract, store, transcribe) hands a
small, immutable record to the next. Typed dataclasses make the hand-off
explicit and keep the HTTP layer free of ad-hoc dicts.

HOW: Plain dataclasses, one per stage output:
  UploadRequest        the buffered POST body and its content type
  ExtractedAudio       the audio bytes pulled out of the body
  StoredRecording      where the bytes were written on disk
  TranscriptionResult  the engine outcome (text, which path, success)

RULES:
- Nothing here outlives one request
- ExtractedAudio with size_bytes == 0 never reaches the store
- TranscriptionResult.succeeded is True only for non-blank text
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from pathlib import Path


class EngineStage(str, enum.Enum):
    """Which decoding path produced (or attempted) a transcription."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class UploadRequest:
    """A fully buffered POST body."""

    content_type: str
    raw_body: bytes
    received_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ExtractedAudio:
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class StoredRecording:
    """A recording written by the UploadStore.

    RULES:
    - stem is shared with the engine's output file (``<stem>.txt``) and
      with the fallback waveform (``<stem>.wav``) for traceability
    - created_at is the millisecond epoch used in the file name
    """

    path: Path
    created_at: int

    @property
    def stem(self) -> str:
        return self.path.stem


@dataclass
class TranscriptionResult:
    """Outcome of one run of the transcription state machine.

    RULES:
    - text is stripped; empty when nothing usable was produced
    - engine_used is the stage that produced the text, or None on failure
    - attempts lists every stage entered, in order
    """

    text: str = ""
    engine_used: EngineStage | None = None
    attempts: list[EngineStage] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return bool(self.text.strip())
