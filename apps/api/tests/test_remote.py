from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from lecture_pilot.errors import NetworkError, RequestTimeoutError, SchemaError
from lecture_pilot.normalizer import normalize_media, normalize_text
from lecture_pilot.remote import RemoteLectureService
from lecture_pilot.schemas import ChatTurn

BASE = "http://primary.test/api/v1"


def _service(handler) -> RemoteLectureService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteLectureService(base_url=BASE, token="abc", client=client)


def test_text_upload_posts_form_field() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = request.content.decode()
        return httpx.Response(201, json={"status": "success", "data": {"id": "1", "title": "T"}})

    data = asyncio.run(_service(handler).analyze(normalize_text("entropy lecture")))

    assert data == {"id": "1", "title": "T"}
    assert seen["url"] == f"{BASE}/lectures/upload"
    assert seen["auth"] == "Bearer abc"
    assert "transcript=entropy+lecture" in seen["body"]


def test_media_upload_is_multipart() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.content
        return httpx.Response(201, json={"data": {"id": "2"}})

    request = normalize_media(b"RAWVIDEO", "video/mp4", "talk.mp4")
    asyncio.run(_service(handler).analyze(request))

    assert seen["content_type"].startswith("multipart/form-data")
    assert b'name="video"; filename="talk.mp4"' in seen["body"]
    assert b"RAWVIDEO" in seen["body"]


def test_chat_posts_history_and_returns_answer() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["json"] = json.loads(request.content)
        return httpx.Response(200, json={"status": "success", "data": {"answer": "Because entropy."}})

    history = [ChatTurn(role="user", text="hi")]
    answer = asyncio.run(_service(handler).ask("lec-1", history, "why?"))

    assert answer == "Because entropy."
    assert seen["url"] == f"{BASE}/lectures/lec-1/chat"
    assert seen["json"]["message"] == "why?"
    assert seen["json"]["history"][0]["role"] == "user"
    assert seen["json"]["history"][0]["text"] == "hi"


@pytest.mark.parametrize(
    "handler, error",
    [
        (lambda r: httpx.Response(500, text="boom"), NetworkError),
        (lambda r: httpx.Response(200, text="<html>"), SchemaError),
        (lambda r: httpx.Response(200, json={"status": "success"}), SchemaError),
    ],
)
def test_failures_are_mapped(handler, error) -> None:
    with pytest.raises(error):
        asyncio.run(_service(handler).analyze(normalize_text("x")))


def test_connection_errors_are_network_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(NetworkError):
        asyncio.run(_service(handler).analyze(normalize_text("x")))


def test_transport_timeouts_are_timeout_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(RequestTimeoutError):
        asyncio.run(_service(handler).ask("lec", [], "hi"))


def test_blank_answer_is_a_schema_error() -> None:
    service = _service(lambda r: httpx.Response(200, json={"data": {"answer": " "}}))
    with pytest.raises(SchemaError):
        asyncio.run(service.ask("lec", [], "hi"))
