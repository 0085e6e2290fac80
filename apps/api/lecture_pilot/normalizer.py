from __future__ import annotations

from typing import Optional, Union

from .config import settings
from .errors import ValidationError
from .schemas import AnalysisRequest


def normalize_text(text: str, max_chars: Optional[int] = None) -> AnalysisRequest:
    limit = max_chars if max_chars is not None else settings.max_transcript_chars
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationError("Transcript is empty")
    cleaned = cleaned[:limit]
    return AnalysisRequest(
        kind="text",
        text=cleaned,
        size_bytes=len(cleaned.encode("utf-8")),
    )


def normalize_media(
    data: bytes,
    content_type: Optional[str],
    filename: Optional[str] = None,
    max_bytes: Optional[int] = None,
) -> AnalysisRequest:
    limit = max_bytes if max_bytes is not None else settings.max_upload_bytes
    if not data:
        raise ValidationError("Uploaded file is empty")
    if len(data) > limit:
        raise ValidationError(
            f"File is too large ({len(data)} bytes); the limit is {limit} bytes"
        )
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type not in settings.allowed_media_types:
        raise ValidationError(
            "Invalid file type. Only video and audio files are allowed "
            f"({', '.join(settings.allowed_media_types)})."
        )
    return AnalysisRequest(
        kind="media",
        data=data,
        content_type=media_type,
        filename=filename,
        size_bytes=len(data),
    )


def normalize(
    content: Union[str, bytes],
    content_type: Optional[str] = None,
    filename: Optional[str] = None,
) -> AnalysisRequest:
    if isinstance(content, str):
        return normalize_text(content)
    if isinstance(content, (bytes, bytearray)):
        return normalize_media(bytes(content), content_type, filename)
    raise ValidationError(f"Unsupported content of type {type(content).__name__}")
