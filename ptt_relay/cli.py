"""Command-line interface for the PTT transcription relay.

WHY: Operators need two things from a terminal: start the webhook, and
check that Whisper/ffmpeg on this host actually transcribe a given clip
(without going through the phone app).

HOW: argparse with two subcommands. ``serve`` applies --host/--port/
--log-level on top of Settings.from_env() and hands off to run_api().
``transcribe`` runs the same WhisperEngine state machine the webhook
uses against a local file, prints the text to stdout, and optionally
relays it through the configured Telegram chat.

RULES:
- No subcommand → print help, exit 2
- Status output goes to stderr; only the transcription goes to stdout
- transcribe exits 1 when the file is missing or nothing was transcribed
- Python 3.9 compatible: no match/case, no X | Y unions
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ptt_relay.config import Settings
from ptt_relay.notify.telegram import TelegramNotifier
from ptt_relay.transcription.engine import WhisperEngine


def _status(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def _settings_from_args(args: argparse.Namespace) -> Settings:
    """Environment settings with any explicit CLI flags layered on top."""
    settings = Settings.from_env()
    overrides = {}
    for name in ("host", "port", "log_level", "whisper_model", "language"):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    if overrides:
        settings = dataclasses.replace(settings, **overrides)
    return settings


async def _transcribe_file(args: argparse.Namespace, settings: Settings) -> int:
    input_path = Path(args.input_file).resolve()
    if not input_path.is_file():
        print("Error: File not found: {}".format(input_path), file=sys.stderr)
        return 1

    _status("Transcribing {} with Whisper ({})...".format(input_path.name, settings.whisper_model))
    result = await WhisperEngine(settings).transcribe(input_path)
    if not result.succeeded:
        _status("Transcription failed.")
        return 1

    _status("Transcribed via {} pass.".format(result.engine_used.value))
    print(result.text)

    if args.notify:
        notifier = TelegramNotifier(
            bot_token=settings.telegram_bot_token,
            chat_id=settings.telegram_chat_id,
            api_url=settings.telegram_api_url,
            prefix=settings.notify_prefix,
        )
        if not notifier.enabled:
            _status("Telegram relay not configured; skipping notification.")
        elif await notifier.notify(result.text):
            _status("Relayed to Telegram.")
        else:
            _status("Telegram relay failed (see log).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser (separate from main() so tests can inspect it)."""
    parser = argparse.ArgumentParser(
        prog="ptt-relay",
        description="Push-to-talk webhook: transcribe uploaded audio with Whisper "
                    "and relay the text to Telegram.",
    )
    # Shared by every subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--log-level",
        type=str.upper,
        default=None,
        help="Logging level (default: LOG_LEVEL env var or INFO).",
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", parents=[common], help="Run the HTTP webhook.")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST or 0.0.0.0).")
    serve.add_argument("--port", type=int, default=None, help="TCP port (default: PORT or 3457).")

    transcribe = sub.add_parser("transcribe", parents=[common], help="Transcribe a local audio file.")
    transcribe.add_argument("input_file", help="Path to the audio file.")
    transcribe.add_argument(
        "--model",
        dest="whisper_model",
        default=None,
        help="Whisper model (default: WHISPER_MODEL or small).",
    )
    transcribe.add_argument(
        "--language",
        default=None,
        help="Language code passed to Whisper (default: WHISPER_LANGUAGE or en).",
    )
    transcribe.add_argument(
        "--notify",
        action="store_true",
        help="Relay the transcription to the configured Telegram chat.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ptt-relay console script and ``python -m ptt_relay``.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help(sys.stderr)
        sys.exit(2)

    try:
        settings = _settings_from_args(args)
    except ValueError as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)

    if args.command == "serve":
        from ptt_relay.server.app import run_api
        run_api(settings)
        return

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    try:
        code = asyncio.run(_transcribe_file(args, settings))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    main()
