from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from .errors import SchemaError
from .schemas import LectureBundle, LecturePayload

QUIZ_OPTION_COUNT = 4


@dataclass(frozen=True)
class ContractIssue:
    field: str
    message: str


def _extract_json_block(text: str) -> Optional[str]:
    fence = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL | re.IGNORECASE)
    if fence:
        return fence.group(1)
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if match:
        return match.group(0)
    return None


def _load_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        block = _extract_json_block(raw)
        if block is None:
            raise SchemaError("Producer output is not JSON") from None
        try:
            return json.loads(block)
        except json.JSONDecodeError as exc:
            raise SchemaError(f"Producer output is not valid JSON: {exc}") from exc


def parse_lecture_payload(raw: Any) -> LecturePayload:
    if isinstance(raw, LecturePayload):
        return raw
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise SchemaError("Empty response from producer")
    data = _load_json(raw) if isinstance(raw, str) else raw
    if not isinstance(data, dict):
        raise SchemaError(f"Expected a JSON object, got {type(data).__name__}")
    try:
        return LecturePayload.model_validate(data)
    except PydanticValidationError as exc:
        raise SchemaError(f"Producer output does not match the lecture schema: {exc}") from exc


def build_bundle(
    payload: LecturePayload,
    *,
    lecture_id: Optional[str] = None,
    transcript: Optional[str] = None,
    video_url: Optional[str] = None,
) -> LectureBundle:
    """Map a parsed payload into a bundle, filling missing quiz and flashcard ids."""
    data = payload.model_dump()
    for key in ("quizzes", "flashcards"):
        for idx, item in enumerate(data[key], start=1):
            if item.get("id") is None:
                item["id"] = idx
    data["id"] = lecture_id or uuid4().hex
    if transcript is not None:
        data["transcript"] = transcript
    data["video_url"] = video_url
    return LectureBundle.model_validate(data)


def parse_timestamp(value: str) -> int:
    """Seconds for an ``MM:SS`` (or ``H:MM:SS``) label."""
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid timestamp: {value!r}")
    numbers = [int(p) for p in parts]
    if any(n >= 60 for n in numbers[1:]):
        raise ValueError(f"Invalid timestamp: {value!r}")
    seconds = 0
    for number in numbers:
        seconds = seconds * 60 + number
    return seconds


def audit_bundle(bundle: LecturePayload) -> list[ContractIssue]:
    """Cross-field checks the parser deliberately skips."""
    issues: list[ContractIssue] = []

    previous: Optional[int] = None
    for idx, segment in enumerate(bundle.segments):
        try:
            seconds = parse_timestamp(segment.timestamp)
        except ValueError:
            issues.append(ContractIssue(f"segments[{idx}].timestamp", f"unparseable timestamp {segment.timestamp!r}"))
            continue
        if previous is not None and seconds < previous:
            issues.append(ContractIssue(f"segments[{idx}].timestamp", f"{segment.timestamp} is earlier than the previous segment"))
        previous = seconds

    for idx, section in enumerate(bundle.notes):
        if not section.points:
            issues.append(ContractIssue(f"notes[{idx}].points", "note section has no points"))

    seen_quiz: set[int] = set()
    for idx, quiz in enumerate(bundle.quizzes):
        if len(quiz.options) != QUIZ_OPTION_COUNT:
            issues.append(
                ContractIssue(
                    f"quizzes[{idx}].options",
                    f"expected {QUIZ_OPTION_COUNT} options, got {len(quiz.options)}",
                )
            )
        if quiz.correct_answer is not None and not 0 <= quiz.correct_answer < len(quiz.options):
            issues.append(
                ContractIssue(
                    f"quizzes[{idx}].correctAnswer",
                    f"index {quiz.correct_answer} is out of range for {len(quiz.options)} options",
                )
            )
        if quiz.id is not None:
            if quiz.id in seen_quiz:
                issues.append(ContractIssue(f"quizzes[{idx}].id", f"duplicate quiz id {quiz.id}"))
            seen_quiz.add(quiz.id)

    seen_cards: set[int] = set()
    for idx, card in enumerate(bundle.flashcards):
        if card.id is not None:
            if card.id in seen_cards:
                issues.append(ContractIssue(f"flashcards[{idx}].id", f"duplicate flashcard id {card.id}"))
            seen_cards.add(card.id)

    return issues
