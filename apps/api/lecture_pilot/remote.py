from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import httpx

from .config import settings
from .errors import NetworkError, RequestTimeoutError, SchemaError
from .schemas import AnalysisRequest, ChatTurn

logger = logging.getLogger(__name__)


class RemoteLectureService:
    """Client for the co-located Lecture Pilot API, the primary analysis and chat path.

    Calls carry no timeout of their own; callers race them against a timer.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.token = token or settings.api_token or "dev-token"
        self._client = client or httpx.AsyncClient(timeout=None)

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, **kwargs: Any) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.post(url, headers=self._headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(f"Request to {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Network connection to {url} failed: {exc}") from exc
        if not response.is_success:
            raise NetworkError(f"Server error from {url}: {response.status_code} {response.reason_phrase}")
        try:
            body = response.json()
        except ValueError as exc:
            raise SchemaError(f"Invalid JSON response from {url}") from exc
        if not isinstance(body, dict) or not isinstance(body.get("data"), dict):
            raise SchemaError(f"Response from {url} has no data envelope")
        return body["data"]

    async def analyze(self, request: AnalysisRequest) -> dict:
        if request.kind == "media":
            files = {
                "video": (
                    request.filename or "upload",
                    request.data or b"",
                    request.content_type or "application/octet-stream",
                )
            }
            return await self._post("/lectures/upload", files=files)
        return await self._post("/lectures/upload", data={"transcript": request.text or ""})

    async def ask(self, lecture_id: str, history: Sequence[ChatTurn], message: str) -> str:
        payload = {
            "message": message,
            "history": [turn.model_dump(mode="json", by_alias=True) for turn in history],
        }
        data = await self._post(f"/lectures/{lecture_id}/chat", json=payload)
        answer = data.get("answer")
        if not isinstance(answer, str) or not answer.strip():
            raise SchemaError("Chat response has no answer")
        return answer
