"""Pydantic response models for the webhook.

WHY: The recording app parses these bodies, so their shape is the
external contract. Declaring them as models keeps every handler
emitting exactly the same keys.

RULES:
- IngestionResponse omits unset optional fields (no "transcription": null)
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    service: str = Field(description="Service name.")


class IngestionResponse(BaseModel):
    """Result of one upload.

    RULES:
    - success is True only when non-empty text was produced
    - transcription is present only on success
    - error is present only on failure
    """

    success: bool = Field(description="Whether a transcription was produced.")
    transcription: Optional[str] = Field(default=None, description="Transcribed text.")
    error: Optional[str] = Field(default=None, description="Failure description.")


class NotFoundResponse(BaseModel):
    error: str = Field(default="Not found")
