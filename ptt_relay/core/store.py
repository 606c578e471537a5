"""Upload working directory: write, delete, and reap stored recordings.

WHY: The Whisper CLI only reads files, so every upload has to land on
disk first. The working directory is the one piece of state shared by
concurrent requests, and it is the only thing the service leaves behind,
so naming and retention have to be explicit.

HOW: ``UploadStore`` owns a single directory. ``store()`` writes bytes
to ``ptt_<epoch-ms>_<token>.<ext>``; the millisecond timestamp keeps the
name traceable to the request, the random token keeps two uploads in the
same millisecond apart. ``cleanup_expired()`` removes recordings older
than the TTL and is driven by the app's periodic reaper.

RULES:
- The directory is created (with parents) on construction; idempotent
- Each store() call writes a new file; existing files are never overwritten
- Write failures raise StorageError without exposing the path to clients
- delete() and cleanup_expired() are best-effort and never raise
"""

from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path

from ptt_relay.core.models import StoredRecording

logger = logging.getLogger(__name__)

FILE_PREFIX = "ptt_"


class StorageError(OSError):
    """Raised when an upload cannot be written to the working directory."""


class UploadStore:
    """Writes uploaded recordings into a dedicated working directory."""

    def __init__(self, directory: Path, extension: str = ".m4a") -> None:
        self.directory = Path(directory)
        self.extension = extension
        self.directory.mkdir(parents=True, exist_ok=True)

    def _new_path(self, created_at: int) -> Path:
        token = uuid.uuid4().hex[:8]
        return self.directory / "{}{}_{}{}".format(
            FILE_PREFIX, created_at, token, self.extension
        )

    def store(self, data: bytes, created_at: int | None = None) -> StoredRecording:
        """Write ``data`` to a new uniquely named file.

        Args:
            data: The extracted audio bytes.
            created_at: Millisecond epoch to name the file by; defaults to now.

        Returns:
            The StoredRecording describing the new file.
        """
        if created_at is None:
            created_at = int(time.time() * 1000)

        path = self._new_path(created_at)
        try:
            # "xb" refuses to clobber an existing file
            with open(path, "xb") as f:
                f.write(data)
        except OSError as exc:
            logger.error("Failed to write upload %s: %s", path, exc)
            raise StorageError("Could not store upload") from exc

        logger.info("Stored %d bytes at %s", len(data), path)
        return StoredRecording(path=path, created_at=created_at)

    def delete(self, recording: StoredRecording) -> None:
        try:
            recording.path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Failed to delete upload: %s", recording.path)

    def cleanup_expired(self, ttl_seconds: float, now: float | None = None) -> int:
        """Delete stored recordings whose mtime is older than ``ttl_seconds``.

        RULES:
        - Only files with the upload prefix are candidates
        - Returns the number of files removed
        - Individual failures are logged and skipped
        """
        if now is None:
            now = time.time()

        removed = 0
        for path in self.directory.glob(FILE_PREFIX + "*"):
            try:
                age = now - path.stat().st_mtime
                if age <= ttl_seconds:
                    continue
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError:
                logger.warning("Failed to reap upload: %s", path)
                continue
            removed += 1
            logger.info("Reaped upload %s (%.0fs old)", path.name, age)

        return removed
