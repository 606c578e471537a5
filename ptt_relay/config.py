"""Runtime settings, environment parsing, and .env loading.

WHY: The webhook runs unattended on a small host next to the Whisper
install. Every knob (port, model, tool paths, timeouts, relay token)
must be adjustable without touching code, and handlers must never read
the environment on their own.

HOW: python-dotenv loads the .env file on import. ``Settings`` is a
frozen dataclass built once by ``Settings.from_env()`` at process start
and handed to the app factory, the CLI, and the engine.

RULES:
- All variables are optional; defaults match a stock Whisper + ffmpeg host
- Relay is enabled only when BOTH the bot token and the chat id are set
- Numeric variables that fail to parse raise ValueError naming the variable
- Settings are immutable after construction
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the directory the service is started from
load_dotenv()

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_PORT = 3457
DEFAULT_HOST = "0.0.0.0"
DEFAULT_WHISPER_MODEL = "small"
DEFAULT_LANGUAGE = "en"
DEFAULT_TRANSCRIBE_TIMEOUT_S = 120.0
DEFAULT_REENCODE_TIMEOUT_S = 60.0
DEFAULT_UPLOAD_DIR = "/tmp/ptt-uploads"
DEFAULT_UPLOAD_EXTENSION = ".m4a"
DEFAULT_UPLOAD_TTL_S = 3600.0
DEFAULT_TELEGRAM_API_URL = "https://api.telegram.org"
DEFAULT_NOTIFY_PREFIX = "\U0001f3a4 Heard: "
DEFAULT_SERVICE_NAME = "ptt-webhook"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_str(name: str, default: str) -> str:
    return os.getenv(name, default).strip() or default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(
            "Invalid value for {}: {!r} is not a number".format(name, raw)
        ) from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(
            "Invalid value for {}: {!r} is not an integer".format(name, raw)
        ) from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in _TRUTHY


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, fixed for the lifetime of the service.

    RULES:
    - port / host: where uvicorn binds
    - whisper_model / language: passed verbatim to the Whisper CLI
    - transcribe_timeout_s applies to each Whisper attempt separately
    - reencode_timeout_s bounds the ffmpeg fallback conversion
    - upload_dir holds stored recordings; transcript_dir receives engine output
    - keep_uploads=False deletes each recording once its request is done
    - telegram_bot_token / telegram_chat_id: both required for the relay
    """

    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    whisper_model: str = DEFAULT_WHISPER_MODEL
    language: str = DEFAULT_LANGUAGE
    whisper_bin: str = "whisper"
    ffmpeg_bin: str = "ffmpeg"
    transcribe_timeout_s: float = DEFAULT_TRANSCRIBE_TIMEOUT_S
    reencode_timeout_s: float = DEFAULT_REENCODE_TIMEOUT_S
    upload_dir: Path = Path(DEFAULT_UPLOAD_DIR)
    transcript_dir: Path = Path(tempfile.gettempdir())
    upload_extension: str = DEFAULT_UPLOAD_EXTENSION
    keep_uploads: bool = False
    upload_ttl_s: float = DEFAULT_UPLOAD_TTL_S
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    telegram_api_url: str = DEFAULT_TELEGRAM_API_URL
    notify_prefix: str = DEFAULT_NOTIFY_PREFIX
    service_name: str = DEFAULT_SERVICE_NAME
    log_level: str = "INFO"

    @property
    def relay_enabled(self) -> bool:
        """True when both relay credentials are configured."""
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables (populated by python-dotenv).

        RULES:
        - Empty variables fall back to their defaults
        - Raises ValueError for malformed numeric variables
        """
        extension = _env_str("UPLOAD_EXTENSION", DEFAULT_UPLOAD_EXTENSION)
        if not extension.startswith("."):
            extension = "." + extension

        return cls(
            port=_env_int("PORT", DEFAULT_PORT),
            host=_env_str("HOST", DEFAULT_HOST),
            whisper_model=_env_str("WHISPER_MODEL", DEFAULT_WHISPER_MODEL),
            language=_env_str("WHISPER_LANGUAGE", DEFAULT_LANGUAGE),
            whisper_bin=_env_str("WHISPER_BIN", "whisper"),
            ffmpeg_bin=_env_str("FFMPEG_BIN", "ffmpeg"),
            transcribe_timeout_s=_env_float(
                "TRANSCRIBE_TIMEOUT_S", DEFAULT_TRANSCRIBE_TIMEOUT_S
            ),
            reencode_timeout_s=_env_float(
                "REENCODE_TIMEOUT_S", DEFAULT_REENCODE_TIMEOUT_S
            ),
            upload_dir=Path(_env_str("UPLOAD_DIR", DEFAULT_UPLOAD_DIR)),
            transcript_dir=Path(_env_str("TRANSCRIPT_DIR", tempfile.gettempdir())),
            upload_extension=extension,
            keep_uploads=_env_bool("KEEP_UPLOADS", False),
            upload_ttl_s=_env_float("UPLOAD_TTL_S", DEFAULT_UPLOAD_TTL_S),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", "").strip(),
            telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID", "").strip(),
            telegram_api_url=_env_str("TELEGRAM_API_URL", DEFAULT_TELEGRAM_API_URL),
            notify_prefix=os.getenv("NOTIFY_PREFIX", DEFAULT_NOTIFY_PREFIX),
            service_name=_env_str("SERVICE_NAME", DEFAULT_SERVICE_NAME),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )
