"""Tests for the Whisper adapter's primary/fallback state machine.

WHY: The fallback path is what rescues odd phone recordings, and its
cleanup rules are what keep /tmp from filling up. Both are easy to break
without noticing because the external tools are never run in CI.

HOW: A FakeRunner (conftest) stands in for whisper and ffmpeg. Each test
scripts the Whisper outcomes and then checks the result, the sequence of
tools invoked, and what is left on disk.

RULES:
- Async coroutines are driven with asyncio.run()
- The fallback is only entered after a failed or empty primary pass
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from ptt_relay.core.models import EngineStage
from ptt_relay.transcription.engine import WhisperEngine

from tests.conftest import TIMEOUT, FakeRunner


def _audio(settings) -> Path:
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    path = settings.upload_dir / "ptt_1700000000000_abcd1234.m4a"
    path.write_bytes(b"\x00" * 64)
    return path


def _transcribe(settings, runner: FakeRunner):
    engine = WhisperEngine(settings, runner=runner)
    return asyncio.run(engine.transcribe(_audio(settings)))


class TestPrimaryPath:
    def test_primary_success_skips_fallback(self, settings):
        runner = FakeRunner(["  hello world \n"])
        result = _transcribe(settings, runner)

        assert result.succeeded
        assert result.text == "hello world"
        assert result.engine_used == EngineStage.PRIMARY
        assert result.attempts == [EngineStage.PRIMARY]
        assert runner.tools == ["whisper"]

    def test_command_line(self, settings):
        runner = FakeRunner(["hi"])
        _transcribe(settings, runner)
        args, timeout = runner.calls[0]

        assert args[1].endswith("ptt_1700000000000_abcd1234.m4a")
        assert args[args.index("--model") + 1] == "small"
        assert args[args.index("--language") + 1] == "en"
        assert args[args.index("--output_format") + 1] == "txt"
        assert args[args.index("--output_dir") + 1] == str(settings.transcript_dir)
        assert timeout == 120.0

    def test_output_file_is_removed(self, settings):
        _transcribe(settings, FakeRunner(["hi"]))
        assert list(settings.transcript_dir.iterdir()) == []


class TestFallbackPath:
    def test_empty_primary_enters_fallback(self, settings):
        runner = FakeRunner(["", "recovered text"])
        result = _transcribe(settings, runner)

        assert result.text == "recovered text"
        assert result.engine_used == EngineStage.FALLBACK
        assert result.attempts == [EngineStage.PRIMARY, EngineStage.FALLBACK]
        assert runner.tools == ["whisper", "ffmpeg", "whisper"]

    def test_failed_primary_enters_fallback(self, settings):
        runner = FakeRunner([None, "recovered"])
        result = _transcribe(settings, runner)
        assert result.succeeded
        assert runner.tools == ["whisper", "ffmpeg", "whisper"]

    def test_timed_out_primary_enters_fallback(self, settings):
        runner = FakeRunner([TIMEOUT, "recovered"])
        assert _transcribe(settings, runner).text == "recovered"

    def test_fallback_transcribes_16k_mono_wav(self, settings):
        runner = FakeRunner(["", "ok"])
        _transcribe(settings, runner)
        ffmpeg_args, ffmpeg_timeout = runner.calls[1]
        whisper_args, _ = runner.calls[2]

        assert ffmpeg_args[ffmpeg_args.index("-ar") + 1] == "16000"
        assert ffmpeg_args[ffmpeg_args.index("-ac") + 1] == "1"
        assert ffmpeg_args[-1].endswith("ptt_1700000000000_abcd1234.wav")
        assert ffmpeg_timeout == settings.reencode_timeout_s
        assert whisper_args[1] == ffmpeg_args[-1]

    def test_wav_is_deleted_after_fallback(self, settings):
        _transcribe(settings, FakeRunner(["", "ok"]))
        assert list(settings.upload_dir.glob("*.wav")) == []

    def test_wav_is_deleted_when_fallback_fails(self, settings):
        _transcribe(settings, FakeRunner(["", None]))
        assert list(settings.upload_dir.glob("*.wav")) == []

    def test_reencode_failure_is_terminal(self, settings):
        runner = FakeRunner([""], reencode_ok=False)
        result = _transcribe(settings, runner)

        assert not result.succeeded
        assert result.engine_used is None
        assert result.attempts == [EngineStage.PRIMARY]
        assert runner.tools == ["whisper", "ffmpeg"]

    def test_empty_fallback_fails(self, settings):
        result = _transcribe(settings, FakeRunner(["", ""]))
        assert not result.succeeded
        assert result.text == ""

    def test_whitespace_only_output_is_failure(self, settings):
        result = _transcribe(settings, FakeRunner([" \n\t ", "\n"]))
        assert not result.succeeded

    def test_no_output_files_left_behind(self, settings):
        _transcribe(settings, FakeRunner(["", ""]))
        assert list(settings.transcript_dir.iterdir()) == []


class TestReencodeNaming:
    def test_wav_upload_gets_distinct_intermediate(self, settings):
        settings.upload_dir.mkdir(parents=True, exist_ok=True)
        src = settings.upload_dir / "ptt_1_x.wav"
        src.write_bytes(b"RIFF")
        engine = WhisperEngine(settings, runner=FakeRunner())

        wav = asyncio.run(engine.reencode(src))
        assert wav is not None
        assert wav != src
        assert wav.name == "ptt_1_x-16k.wav"
