"""Transcription backends: the Whisper CLI adapter and its command runner.

WHY: The engine is the one part of the service most likely to change
(another model, a hosted API). Handlers depend only on the
TranscriptionEngine interface; WhisperEngine is the default backend.

RULES:
- All external processes go through a CommandRunner (run_command by default)
- Engines report failure through TranscriptionResult, not exceptions
"""

from ptt_relay.transcription.engine import TranscriptionEngine, WhisperEngine
from ptt_relay.transcription.runner import CommandResult, run_command

__all__ = ["CommandResult", "TranscriptionEngine", "WhisperEngine", "run_command"]
