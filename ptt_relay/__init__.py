"""PTT transcription relay: webhook that turns push-to-talk audio into text.

WHY: The push-to-talk phone app records a short clip and needs someone
to turn it into text and tell the chat what was heard. This package is
that someone: a single-process HTTP service in front of the Whisper CLI.

HOW: Four stages per request: extract the audio from the POST body,
store it in the working directory, transcribe it (Whisper, with an
ffmpeg re-encode fallback), and optionally relay the text to Telegram.
Each stage is independently testable.

RULES:
- The HTTP response reflects the transcription outcome only
- The relay is best-effort and never fails a request
- Nothing but the upload directory is shared between requests
"""

__version__ = "0.1.0"
