from __future__ import annotations

import asyncio
from typing import Optional, Sequence

import pytest

from lecture_pilot.config import settings
from lecture_pilot.db import init_db
from lecture_pilot.errors import GenerationError
from lecture_pilot.llm import LLMClient
from lecture_pilot.schemas import AnalysisRequest, ChatTurn


class FailingLLMClient(LLMClient):
    name = "failing"

    async def generate(self, system_instructions, schema, content) -> dict:
        raise GenerationError("generation unavailable")

    async def chat(self, system_instructions, history, message) -> str:
        raise GenerationError("chat unavailable")


class RecordingLLMClient(LLMClient):
    """Returns canned output and remembers what it was sent."""

    name = "recording"

    def __init__(self, payload: Optional[dict] = None, answer: str = "recorded answer") -> None:
        self.payload = payload or {}
        self.answer = answer
        self.generate_calls: list[tuple[str, str]] = []
        self.chat_calls: list[tuple[str, list[ChatTurn], str]] = []

    async def generate(self, system_instructions, schema, content) -> dict:
        self.generate_calls.append((system_instructions, content))
        return self.payload

    async def chat(self, system_instructions, history, message) -> str:
        self.chat_calls.append((system_instructions, list(history), message))
        return self.answer


class StubRemote:
    """Stands in for ``RemoteLectureService``."""

    def __init__(
        self,
        data: Optional[dict] = None,
        answer: str = "remote answer",
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.data = data
        self.answer = answer
        self.error = error
        self.delay = delay
        self.analyze_calls: list[AnalysisRequest] = []
        self.ask_calls: list[tuple[str, list[ChatTurn], str]] = []

    async def _respond(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def analyze(self, request: AnalysisRequest) -> dict:
        self.analyze_calls.append(request)
        await self._respond()
        return self.data or {}

    async def ask(self, lecture_id: str, history: Sequence[ChatTurn], message: str) -> str:
        self.ask_calls.append((lecture_id, list(history), message))
        await self._respond()
        return self.answer


@pytest.fixture(autouse=True)
def isolated_storage(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "runs_dir", tmp_path / "runs")
    monkeypatch.setattr(settings, "record_runs", False)
    monkeypatch.setattr(settings, "simulated_stage_delay_seconds", 0.0)
    init_db(tmp_path / "lectures.db")
    yield tmp_path


@pytest.fixture
def failing_llm() -> FailingLLMClient:
    return FailingLLMClient()


@pytest.fixture
def recording_llm() -> RecordingLLMClient:
    return RecordingLLMClient()


@pytest.fixture
def make_remote():
    return StubRemote
