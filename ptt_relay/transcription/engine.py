"""Speech-to-text adapter: Whisper CLI with an ffmpeg re-encode fallback.

WHY: Phone recordings arrive as AAC/M4A. Whisper usually decodes them
directly, but some containers trip its decoder or yield nothing. A
second pass over a normalized 16 kHz mono WAV recovers most of those
uploads without a second engine.

HOW: ``WhisperEngine.transcribe()`` is a small state machine:

    PRIMARY_ATTEMPT --text--------------------------> DONE(ok)
    PRIMARY_ATTEMPT --error/empty--> FALLBACK_REENCODE
    FALLBACK_REENCODE --error----------------------> DONE(failed)
    FALLBACK_REENCODE --ok--> FALLBACK_ATTEMPT
    FALLBACK_ATTEMPT --text-------------------------> DONE(ok)
    FALLBACK_ATTEMPT --error/empty-----------------> DONE(failed)

Each transition is its own coroutine (primary_attempt, reencode,
fallback_attempt) so it can be exercised alone. Commands go through an
injectable CommandRunner; tests pass a fake that records calls.

RULES:
- Whisper writes ``<transcript_dir>/<stem>.txt``; the stem is the stored
  recording's stem, so both attempts use the same output name
- The output file is read, stripped, and deleted after every attempt
- Only non-blank text counts as success, whatever the exit code
- The intermediate WAV is deleted after the fallback attempt
- Tool stderr is logged, never returned
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from ptt_relay.config import Settings
from ptt_relay.core.models import EngineStage, TranscriptionResult
from ptt_relay.transcription.runner import CommandResult, CommandRunner, run_command

logger = logging.getLogger(__name__)

_STDERR_LOG_CHARS = 500


class TranscriptionEngine(ABC):
    """Abstract base for transcription backends.

    To add a backend, subclass and implement ``transcribe()``; the HTTP
    layer and CLI only depend on this interface.
    """

    @abstractmethod
    async def transcribe(self, audio_path: Path) -> TranscriptionResult:
        """Transcribe a stored recording.

        Must not raise for ordinary engine failures; those are reported
        through an unsuccessful TranscriptionResult.
        """


class WhisperEngine(TranscriptionEngine):
    """Runs the openai-whisper CLI, falling back to an ffmpeg-normalized WAV."""

    def __init__(self, settings: Settings, runner: CommandRunner | None = None) -> None:
        self.settings = settings
        self._run = runner or run_command

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def whisper_command(self, audio_path: Path) -> list[str]:
        s = self.settings
        return [
            s.whisper_bin,
            str(audio_path),
            "--model", s.whisper_model,
            "--language", s.language,
            "--output_format", "txt",
            "--output_dir", str(s.transcript_dir),
        ]

    def reencode_command(self, audio_path: Path, wav_path: Path) -> list[str]:
        return [
            self.settings.ffmpeg_bin,
            "-y",
            "-i", str(audio_path),
            "-ar", "16000",
            "-ac", "1",
            str(wav_path),
        ]

    def output_path(self, audio_path: Path) -> Path:
        return self.settings.transcript_dir / (audio_path.stem + ".txt")

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    async def _whisper(self, audio_path: Path, stage: EngineStage) -> str:
        """Run Whisper once and return the stripped text ("" on any failure)."""
        logger.info(
            "Transcribing %s with Whisper (%s, %s pass)",
            audio_path.name, self.settings.whisper_model, stage.value,
        )
        result = await self._run(
            self.whisper_command(audio_path), self.settings.transcribe_timeout_s
        )
        text = self._collect_output(audio_path)

        if result.timed_out:
            logger.warning("Whisper %s pass timed out", stage.value)
            return ""
        if result.returncode != 0:
            _log_failure("Whisper " + stage.value + " pass", result)
            return ""
        if not text:
            logger.warning("Whisper %s pass produced no text", stage.value)
        return text

    def _collect_output(self, audio_path: Path) -> str:
        """Read and delete Whisper's output file if it exists."""
        out = self.output_path(audio_path)
        try:
            text = out.read_text(encoding="utf-8", errors="replace").strip()
        except FileNotFoundError:
            return ""
        except OSError:
            logger.warning("Could not read Whisper output %s", out)
            text = ""
        try:
            out.unlink()
        except OSError:
            logger.warning("Could not delete Whisper output %s", out)
        return text

    async def primary_attempt(self, audio_path: Path) -> str:
        return await self._whisper(audio_path, EngineStage.PRIMARY)

    async def reencode(self, audio_path: Path) -> Path | None:
        """Convert to 16 kHz mono WAV next to the original; None on failure."""
        wav_path = audio_path.with_suffix(".wav")
        if wav_path == audio_path:
            wav_path = audio_path.with_name(audio_path.stem + "-16k.wav")

        result = await self._run(
            self.reencode_command(audio_path, wav_path),
            self.settings.reencode_timeout_s,
        )
        if not result.ok or not wav_path.exists():
            if result.timed_out:
                logger.warning("ffmpeg re-encode timed out")
            else:
                _log_failure("ffmpeg re-encode", result)
            _unlink_quietly(wav_path)
            return None
        return wav_path

    async def fallback_attempt(self, wav_path: Path) -> str:
        try:
            return await self._whisper(wav_path, EngineStage.FALLBACK)
        finally:
            _unlink_quietly(wav_path)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def transcribe(self, audio_path: Path) -> TranscriptionResult:
        result = TranscriptionResult()

        result.attempts.append(EngineStage.PRIMARY)
        text = await self.primary_attempt(audio_path)
        if text:
            result.text = text
            result.engine_used = EngineStage.PRIMARY
            return result

        logger.info("Primary pass failed, re-encoding %s", audio_path.name)
        wav_path = await self.reencode(audio_path)
        if wav_path is None:
            return result

        result.attempts.append(EngineStage.FALLBACK)
        text = await self.fallback_attempt(wav_path)
        if text:
            result.text = text
            result.engine_used = EngineStage.FALLBACK
        return result


def _log_failure(what: str, result: CommandResult) -> None:
    logger.warning("%s failed with exit code %d", what, result.returncode)
    if result.stderr:
        logger.debug("%s stderr: %s", what, result.stderr[-_STDERR_LOG_CHARS:])


def _unlink_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Could not delete %s", path)
