from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence, Union

from .config import settings
from .errors import NotFoundError
from .llm import LLMClient
from .prompts import CHAT_FALLBACK_MESSAGE, NO_CONTEXT, chat_system_prompt
from .remote import RemoteLectureService
from .schemas import ChatTurn, LectureBundle
from .store import LectureStore

logger = logging.getLogger(__name__)


def build_grounding_context(bundle: LectureBundle, limit: Optional[int] = None) -> str:
    """Transcript if present, otherwise the summary; only the leading ``limit`` characters."""
    limit = limit if limit is not None else settings.max_chat_context_chars
    context = bundle.transcript if bundle.transcript.strip() else bundle.summary
    if not context.strip():
        context = NO_CONTEXT
    return context[:limit]


class ChatSessionManager:
    """Answers questions about one lecture through the remote chat endpoint, then locally.

    Callers own the turn history; ``ask`` never appends to it and never raises,
    degrading to ``CHAT_FALLBACK_MESSAGE`` for blank questions and failed paths.
    """

    def __init__(
        self,
        local: LLMClient,
        remote: Optional[RemoteLectureService] = None,
        store: Optional[LectureStore] = None,
        primary_timeout: Optional[float] = None,
        context_limit: Optional[int] = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self.store = store
        self.primary_timeout = (
            primary_timeout if primary_timeout is not None else settings.chat_primary_timeout_seconds
        )
        self.context_limit = context_limit if context_limit is not None else settings.max_chat_context_chars

    def _resolve(self, lecture: Union[LectureBundle, str]) -> LectureBundle:
        if isinstance(lecture, LectureBundle):
            return lecture
        if self.store is None:
            raise NotFoundError(f"No lecture store configured to resolve {lecture}")
        return self.store.get(lecture)

    async def ask(
        self,
        lecture: Union[LectureBundle, str],
        history: Sequence[ChatTurn],
        question: str,
    ) -> str:
        lecture_id = lecture.id if isinstance(lecture, LectureBundle) else lecture
        question = (question or "").strip()
        if not question:
            logger.warning("Blank chat question for lecture %s", lecture_id)
            return CHAT_FALLBACK_MESSAGE

        if self.remote is not None:
            answer = await self._try_primary(lecture_id, history, question)
            if answer is not None:
                return answer

        try:
            bundle = self._resolve(lecture)
            return await self.answer(bundle, history, question)
        except Exception as exc:  # noqa: BLE001
            logger.error("Local chat for lecture %s failed: %s: %s", lecture_id, type(exc).__name__, exc)
            return CHAT_FALLBACK_MESSAGE

    async def _try_primary(
        self,
        lecture_id: str,
        history: Sequence[ChatTurn],
        question: str,
    ) -> Optional[str]:
        assert self.remote is not None
        try:
            return await asyncio.wait_for(
                self.remote.ask(lecture_id, history, question),
                timeout=self.primary_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Chat server timed out after %.1fs; using local chat", self.primary_timeout)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Chat server unavailable (%s: %s); using local chat", type(exc).__name__, exc)
        return None

    async def answer(self, bundle: LectureBundle, history: Sequence[ChatTurn], question: str) -> str:
        """Local path only; generation errors propagate."""
        context = build_grounding_context(bundle, self.context_limit)
        return await self.local.chat(chat_system_prompt(context), list(history), question)


class ChatSession:
    """Ordered turns for one lecture's conversation; append-only."""

    def __init__(self, lecture: Union[LectureBundle, str]) -> None:
        self.lecture = lecture
        self.turns: list[ChatTurn] = []

    def record(self, question: str, answer: str) -> None:
        self.turns.append(ChatTurn(role="user", text=question))
        self.turns.append(ChatTurn(role="assistant", text=answer))

    async def ask(self, manager: ChatSessionManager, question: str) -> str:
        answer = await manager.ask(self.lecture, list(self.turns), question)
        self.record(question, answer)
        return answer
