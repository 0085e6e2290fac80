from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Contract(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Segment(_Contract):
    timestamp: str = ""
    title: str = ""
    description: str = ""


class NoteSection(_Contract):
    heading: str = ""
    points: list[str] = Field(default_factory=list)

    @field_validator("points", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value


class Formula(_Contract):
    latex: str = ""
    description: str = ""
    context: str = ""


class ComplexityPoint(_Contract):
    time: str = ""
    score: int = Field(default=1, ge=1, le=100)

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> Any:
        # Producers send floats and occasionally stray outside the curve range.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return min(100, max(1, int(round(value))))
        return value


class QuizQuestion(_Contract):
    id: Optional[int] = None
    question: str = ""
    options: list[str] = Field(default_factory=list)
    correct_answer: Optional[int] = Field(default=None, alias="correctAnswer")
    explanation: str = ""


class Flashcard(_Contract):
    id: Optional[int] = None
    front: str = ""
    back: str = ""


_COLLECTIONS = ("segments", "notes", "formulas", "complexity_data", "quizzes", "flashcards")


class LecturePayload(_Contract):
    """Shape the generative producer must return. Every section may be absent."""

    title: str = "Untitled Lecture"
    summary: str = ""
    transcript: str = ""
    segments: list[Segment] = Field(default_factory=list)
    notes: list[NoteSection] = Field(default_factory=list)
    formulas: list[Formula] = Field(default_factory=list)
    complexity_data: list[ComplexityPoint] = Field(default_factory=list, alias="complexityData")
    quizzes: list[QuizQuestion] = Field(default_factory=list)
    flashcards: list[Flashcard] = Field(default_factory=list)

    @field_validator(*_COLLECTIONS, mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "Untitled Lecture"
        return value

    @field_validator("summary", "transcript", mode="before")
    @classmethod
    def _none_to_text(cls, value: Any) -> Any:
        return "" if value is None else value


class LectureBundle(LecturePayload):
    """Study bundle produced by one analysis. Only the media reference may change later."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str = Field(min_length=1)
    video_url: Optional[str] = Field(default=None, alias="videoUrl")

    def with_media(self, video_url: Optional[str]) -> "LectureBundle":
        return self.model_copy(update={"video_url": video_url})


class ChatTurn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: Literal["user", "assistant"]
    text: str
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="timestamp")

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() == "model":
            return "assistant"
        return value


class AnalysisRequest(BaseModel):
    kind: Literal["text", "media"]
    text: Optional[str] = None
    data: Optional[bytes] = Field(default=None, repr=False)
    content_type: Optional[str] = None
    filename: Optional[str] = None
    size_bytes: int = 0


class ProgressEvent(BaseModel):
    sequence: int
    message: str
    emitted_at: datetime = Field(default_factory=datetime.utcnow)


class ChatRequest(BaseModel):
    message: str = ""
    history: list[ChatTurn] = Field(default_factory=list)


class ChatAnswer(BaseModel):
    answer: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class MediaAttachRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_url: Optional[str] = Field(default=None, alias="videoUrl")
