from __future__ import annotations

import asyncio
import json
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from lecture_pilot import auth
from lecture_pilot.auth import BearerTokenVerifier
from lecture_pilot.chat import ChatSessionManager
from lecture_pilot.config import settings
from lecture_pilot.llm import MockLLMClient
from lecture_pilot.main import app, get_generation_client, get_store
from lecture_pilot.normalizer import normalize_text
from lecture_pilot.orchestrator import FALLING_BACK, AnalysisOrchestrator
from lecture_pilot.progress import ProgressReporter
from lecture_pilot.remote import RemoteLectureService
from lecture_pilot.store import InMemoryLectureStore
from lecture_pilot.transcription import DEMO_TRANSCRIPT, PLACEHOLDER_TRANSCRIPT

AUTH = {"Authorization": "Bearer test-token"}


@pytest.fixture
def store() -> InMemoryLectureStore:
    return InMemoryLectureStore()


@pytest.fixture
def llm():
    return MockLLMClient()


@pytest.fixture
def client(store, llm):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_generation_client] = lambda: llm
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_requests_without_token_are_rejected(client) -> None:
    response = client.post("/api/v1/lectures/upload", data={"transcript": DEMO_TRANSCRIPT})
    assert response.status_code == 401


def test_configured_token_must_match(client, monkeypatch) -> None:
    monkeypatch.setattr(auth, "verifier", BearerTokenVerifier("secret"))
    assert client.get("/api/v1/lectures/x", headers=AUTH).status_code == 401
    assert client.get("/api/v1/lectures/x", headers={"Authorization": "Bearer secret"}).status_code == 404


def test_transcript_upload_creates_lecture(client, store) -> None:
    response = client.post("/api/v1/lectures/upload", data={"transcript": DEMO_TRANSCRIPT}, headers=AUTH)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    data = body["data"]
    assert [s["timestamp"] for s in data["segments"]] == ["00:10", "05:30", "10:15", "15:00"]
    assert "complexityData" in data
    assert "correctAnswer" in data["quizzes"][0]
    assert store.get(data["id"]).title == data["title"]

    fetched = client.get(f"/api/v1/lectures/{data['id']}", headers=AUTH)
    assert fetched.status_code == 200
    assert fetched.json()["data"] == data


def test_video_upload_uses_placeholder_transcript(client) -> None:
    response = client.post(
        "/api/v1/lectures/upload",
        files={"video": ("lecture.mp4", b"\x00\x01fake-video", "video/mp4")},
        headers=AUTH,
    )
    assert response.status_code == 201
    assert response.json()["data"]["transcript"] == PLACEHOLDER_TRANSCRIPT


@pytest.mark.parametrize(
    "kwargs",
    [
        {"files": {"video": ("notes.txt", b"hello", "text/plain")}},
        {"data": {"transcript": "   "}},
        {},
    ],
)
def test_bad_uploads_are_rejected(client, kwargs) -> None:
    response = client.post("/api/v1/lectures/upload", headers=AUTH, **kwargs)
    assert response.status_code == 400


def test_failed_analysis_returns_500(client, llm, failing_llm) -> None:
    app.dependency_overrides[get_generation_client] = lambda: failing_llm
    response = client.post("/api/v1/lectures/upload", data={"transcript": "text"}, headers=AUTH)
    assert response.status_code == 500
    assert "smaller file" in response.json()["detail"]


def test_unknown_lecture_is_404(client) -> None:
    assert client.get("/api/v1/lectures/missing", headers=AUTH).status_code == 404
    response = client.post("/api/v1/lectures/missing/chat", json={"message": "hi"}, headers=AUTH)
    assert response.status_code == 404


def test_chat_answers_from_transcript(client) -> None:
    created = client.post(
        "/api/v1/lectures/upload",
        files={"video": ("thermo.mp4", b"video", "video/mp4")},
        headers=AUTH,
    ).json()["data"]
    response = client.post(
        f"/api/v1/lectures/{created['id']}/chat",
        json={
            "message": "what is the Carnot efficiency formula?",
            "history": [{"role": "model", "text": "Ask me anything."}],
        },
        headers=AUTH,
    )
    assert response.status_code == 200
    assert "Carnot" in response.json()["data"]["answer"]


def test_chat_requires_message(client, store) -> None:
    lecture_id = client.post("/api/v1/lectures/upload", data={"transcript": DEMO_TRANSCRIPT}, headers=AUTH).json()["data"]["id"]
    response = client.post(f"/api/v1/lectures/{lecture_id}/chat", json={"message": " "}, headers=AUTH)
    assert response.status_code == 400


def test_chat_generation_failure_is_500(client, failing_llm, store) -> None:
    lecture_id = client.post("/api/v1/lectures/upload", data={"transcript": DEMO_TRANSCRIPT}, headers=AUTH).json()["data"]["id"]
    app.dependency_overrides[get_generation_client] = lambda: failing_llm
    response = client.post(f"/api/v1/lectures/{lecture_id}/chat", json={"message": "why?"}, headers=AUTH)
    assert response.status_code == 500


def test_media_reference_can_be_attached(client, store) -> None:
    lecture_id = client.post("/api/v1/lectures/upload", data={"transcript": DEMO_TRANSCRIPT}, headers=AUTH).json()["data"]["id"]
    before = store.get(lecture_id)
    response = client.patch(f"/api/v1/lectures/{lecture_id}/media", json={"videoUrl": "blob:preview"}, headers=AUTH)
    assert response.status_code == 200
    after = store.get(lecture_id)
    assert after.video_url == "blob:preview"
    assert after.model_dump(exclude={"video_url"}) == before.model_dump(exclude={"video_url"})


def test_analysis_job_can_be_polled(client, store) -> None:
    response = client.post("/api/v1/lectures/jobs", data={"transcript": DEMO_TRANSCRIPT}, headers=AUTH)
    assert response.status_code == 202
    job_id = response.json()["id"]

    job = {}
    for _ in range(100):
        job = client.get(f"/api/v1/jobs/{job_id}", headers=AUTH).json()
        if job["status"] in ("succeeded", "failed"):
            break
        time.sleep(0.05)

    assert job["status"] == "succeeded"
    assert job["message"] == "Done."
    assert len(store.get(job["lecture_id"]).segments) == 4


def test_unknown_job_is_404(client) -> None:
    assert client.get("/api/v1/jobs/missing", headers=AUTH).status_code == 404


def test_api_serves_as_primary_path_at_default_url(store, llm) -> None:
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_generation_client] = lambda: llm
    try:
        async def run():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport) as http:
                remote = RemoteLectureService(client=http)
                assert remote.base_url == settings.api_base_url
                progress = ProgressReporter()
                orchestrator = AnalysisOrchestrator(local=llm, remote=remote, primary_timeout=5.0)
                bundle = await orchestrator.analyze(normalize_text(DEMO_TRANSCRIPT), progress)
                manager = ChatSessionManager(local=llm, remote=remote, primary_timeout=5.0)
                answer = await manager.ask(bundle, [], "what is clustering?")
                return bundle, progress.messages, answer

        bundle, messages, answer = asyncio.run(run())
    finally:
        app.dependency_overrides.clear()

    assert FALLING_BACK not in messages
    assert store.get(bundle.id).transcript == DEMO_TRANSCRIPT
    assert "Clustering" in answer


def test_streaming_upload_reports_progress_then_bundle(client, store) -> None:
    response = client.post("/api/v1/lectures/upload/stream", data={"transcript": DEMO_TRANSCRIPT}, headers=AUTH)
    assert response.status_code == 200
    events = [
        json.loads(line[len("data: "):])
        for line in response.text.splitlines()
        if line.startswith("data: ")
    ]
    progress = [event["message"] for event in events if event["type"] == "progress"]
    assert progress[0] == "Preparing upload..."
    assert progress[-1] == "Done."
    assert events[-1]["type"] == "done"
    assert store.get(events[-1]["data"]["id"]).title == events[-1]["data"]["title"]


def test_streaming_upload_reports_failure(client, failing_llm) -> None:
    app.dependency_overrides[get_generation_client] = lambda: failing_llm
    response = client.post("/api/v1/lectures/upload/stream", data={"transcript": "text"}, headers=AUTH)
    last = json.loads(response.text.strip().splitlines()[-1][len("data: "):])
    assert last["type"] == "error"
    assert "smaller file" in last["detail"]
