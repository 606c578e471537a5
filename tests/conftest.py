"""Shared test fixtures for the ptt_relay test suite.

WHY: Engine, pipeline, CLI, and HTTP tests all need settings that point
at a throwaway directory and a stand-in for the Whisper and ffmpeg
executables. Centralizing them keeps every test hermetic.

HOW: ``settings`` binds upload and transcript directories to tmp_path.
``FakeRunner`` implements the CommandRunner signature: it records every
command and imitates the tools' file side effects (Whisper writes
``<stem>.txt`` into --output_dir, ffmpeg writes the target WAV).

RULES:
- No test ever spawns whisper or ffmpeg
- FakeRunner whisper outcomes are consumed in call order:
    str      → output file with that text, exit 0
    None     → no output file, exit 1
    TIMEOUT  → no output file, timed out
- When the outcome list runs out, Whisper "succeeds" with empty output
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from ptt_relay.config import Settings
from ptt_relay.transcription.runner import CommandResult

TIMEOUT = object()


class FakeRunner:
    """Records commands and imitates Whisper/ffmpeg file output."""

    def __init__(self, whisper_outcomes: Optional[list] = None, reencode_ok: bool = True) -> None:
        self.whisper_outcomes = list(whisper_outcomes or [])
        self.reencode_ok = reencode_ok
        self.calls: List[tuple] = []

    @property
    def tools(self) -> List[str]:
        return [Path(args[0]).name for args, _ in self.calls]

    async def __call__(self, args: Sequence[str], timeout: float) -> CommandResult:
        args = list(args)
        self.calls.append((args, timeout))

        if Path(args[0]).name == "ffmpeg":
            if not self.reencode_ok:
                return CommandResult(returncode=1, stderr="Invalid data found when processing input")
            Path(args[-1]).write_bytes(b"RIFF....WAVEfmt ")
            return CommandResult(returncode=0)

        outcome = self.whisper_outcomes.pop(0) if self.whisper_outcomes else ""
        if outcome is TIMEOUT:
            return CommandResult(returncode=-1, timed_out=True)
        if outcome is None:
            return CommandResult(returncode=1, stderr="RuntimeError: Failed to load audio")

        audio = Path(args[1])
        out_dir = Path(args[args.index("--output_dir") + 1])
        (out_dir / (audio.stem + ".txt")).write_text(outcome, encoding="utf-8")
        return CommandResult(returncode=0)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings bound to per-test upload and transcript directories."""
    transcript_dir = tmp_path / "transcripts"
    transcript_dir.mkdir()
    return Settings(
        upload_dir=tmp_path / "uploads",
        transcript_dir=transcript_dir,
        service_name="ptt-webhook-test",
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner(["hello world"])
