"""Tests for the ingestion pipeline without the HTTP layer.

WHY: The pipeline decides which failures are soft ("could not
transcribe") and which are faults. Testing it directly keeps those
decisions visible independent of FastAPI.

RULES:
- Async coroutines are driven with asyncio.run()
- Engines are FakeRunner-backed WhisperEngines or tiny stubs
"""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import List

import pytest

from ptt_relay.core.models import EngineStage, TranscriptionResult, UploadRequest
from ptt_relay.core.store import UploadStore
from ptt_relay.server.pipeline import ExtractionError, IngestionPipeline, extract_audio
from ptt_relay.transcription.engine import TranscriptionEngine, WhisperEngine

from tests.conftest import FakeRunner


class _RecordingEngine(TranscriptionEngine):
    def __init__(self, text: str = "ok") -> None:
        self.text = text
        self.seen: List[Path] = []
        self.existed: List[bool] = []

    async def transcribe(self, audio_path: Path) -> TranscriptionResult:
        self.seen.append(audio_path)
        self.existed.append(audio_path.exists())
        return TranscriptionResult(text=self.text, engine_used=EngineStage.PRIMARY)


class TestExtractAudio:
    def test_raw(self):
        audio = extract_audio(UploadRequest(content_type="audio/mp4", raw_body=b"abc"))
        assert audio.data == b"abc"
        assert audio.size_bytes == 3

    def test_first_non_empty_part(self):
        body = (
            b"--B\r\nX: 1\r\n\r\n\r\n"
            b"--B\r\nX: 2\r\n\r\nsecond\r\n"
            b"--B\r\nX: 3\r\n\r\nthird\r\n--B--\r\n"
        )
        audio = extract_audio(
            UploadRequest(content_type="multipart/form-data; boundary=B", raw_body=body)
        )
        assert audio.data == b"second"

    def test_empty_body_raises(self):
        with pytest.raises(ExtractionError):
            extract_audio(UploadRequest(content_type="", raw_body=b""))

    def test_unmatched_boundary_raises(self):
        with pytest.raises(ExtractionError):
            extract_audio(
                UploadRequest(content_type="multipart/form-data; boundary=B", raw_body=b"junk")
            )


class TestPipelineRun:
    def test_store_precedes_transcription(self, settings):
        engine = _RecordingEngine()
        pipeline = IngestionPipeline(UploadStore(settings.upload_dir), engine)

        result = asyncio.run(pipeline.run(UploadRequest(content_type="", raw_body=b"data")))

        assert result.succeeded
        assert engine.existed == [True]
        assert engine.seen[0].parent == settings.upload_dir

    def test_file_named_after_receive_time(self, settings):
        engine = _RecordingEngine()
        pipeline = IngestionPipeline(UploadStore(settings.upload_dir), engine)
        asyncio.run(
            pipeline.run(UploadRequest(content_type="", raw_body=b"d", received_at=1700000000.5))
        )
        assert engine.seen[0].name.startswith("ptt_1700000000500_")

    def test_recording_deleted_by_default(self, settings):
        engine = _RecordingEngine()
        pipeline = IngestionPipeline(UploadStore(settings.upload_dir), engine)
        asyncio.run(pipeline.run(UploadRequest(content_type="", raw_body=b"d")))
        assert not engine.seen[0].exists()

    def test_keep_uploads(self, settings):
        engine = _RecordingEngine()
        pipeline = IngestionPipeline(UploadStore(settings.upload_dir), engine, keep_uploads=True)
        asyncio.run(pipeline.run(UploadRequest(content_type="", raw_body=b"d")))
        assert engine.seen[0].exists()

    def test_empty_engine_output_then_empty_fallback(self, settings):
        runner = FakeRunner(["", ""])
        pipeline = IngestionPipeline(
            UploadStore(settings.upload_dir), WhisperEngine(settings, runner=runner)
        )
        result = asyncio.run(pipeline.run(UploadRequest(content_type="", raw_body=b"d")))

        assert not result.succeeded
        assert runner.tools == ["whisper", "ffmpeg", "whisper"]

    def test_concurrent_runs_do_not_collide(self, settings):
        engine = _RecordingEngine()
        pipeline = IngestionPipeline(
            UploadStore(settings.upload_dir), engine, keep_uploads=True
        )

        async def _many():
            reqs = [
                UploadRequest(content_type="", raw_body=str(i).encode(), received_at=1.0)
                for i in range(10)
            ]
            return await asyncio.gather(*(pipeline.run(r) for r in reqs))

        asyncio.run(_many())
        assert len(set(engine.seen)) == 10
        assert sorted(p.read_bytes() for p in engine.seen) == sorted(
            str(i).encode() for i in range(10)
        )

    def test_disk_io_runs_off_the_event_loop_thread(self, settings):
        threads = {}

        class _ThreadRecordingStore(UploadStore):
            def store(self, data, created_at=None):
                threads["store"] = threading.get_ident()
                return super().store(data, created_at)

            def delete(self, recording):
                threads["delete"] = threading.get_ident()
                super().delete(recording)

        engine = _RecordingEngine()
        pipeline = IngestionPipeline(_ThreadRecordingStore(settings.upload_dir), engine)

        async def _run():
            threads["loop"] = threading.get_ident()
            return await pipeline.run(UploadRequest(content_type="", raw_body=b"d"))

        result = asyncio.run(_run())
        assert result.succeeded
        assert threads["store"] != threads["loop"]
        assert threads["delete"] != threads["loop"]
        assert not engine.seen[0].exists()
