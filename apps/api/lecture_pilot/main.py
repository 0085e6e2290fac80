from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from .auth import Principal, require_principal
from .chat import ChatSessionManager
from .config import settings
from .db import init_db
from .errors import AnalysisError, NotFoundError, ValidationError
from .jobs import create_job, get_job, update_job
from .llm import LLMClient, get_llm_client
from .logging_utils import configure_logging
from .models import JobRead, JobStatus
from .normalizer import normalize_media, normalize_text
from .orchestrator import AnalysisOrchestrator
from .progress import ProgressReporter, ProgressStream
from .schemas import AnalysisRequest, ChatAnswer, ChatRequest, LectureBundle, MediaAttachRequest
from .store import LectureStore, SqlLectureStore

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)
router = APIRouter(prefix="/api/v1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup() -> None:
    configure_logging(settings.log_level, settings.log_json)
    init_db()


def get_store() -> LectureStore:
    return SqlLectureStore()


def get_generation_client() -> LLMClient:
    return get_llm_client()


def _envelope(data: Any) -> dict[str, Any]:
    return {"status": "success", "data": data}


def _bundle_data(bundle: LectureBundle) -> dict[str, Any]:
    return bundle.model_dump(mode="json", by_alias=True)


async def _read_request(video: Optional[UploadFile], transcript: Optional[str]) -> AnalysisRequest:
    try:
        if video is not None:
            # One byte past the limit is enough to reject oversized uploads.
            data = await video.read(settings.max_upload_bytes + 1)
            return normalize_media(data, video.content_type, video.filename)
        if transcript is not None:
            return normalize_text(transcript)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    raise HTTPException(status_code=400, detail="No video file or transcript provided")


def _get_lecture(store: LectureStore, lecture_id: str) -> LectureBundle:
    try:
        return store.get(lecture_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Lecture not found")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/lectures/upload", status_code=201)
async def upload_lecture(
    video: Optional[UploadFile] = File(default=None),
    transcript: Optional[str] = Form(default=None),
    principal: Principal = Depends(require_principal),
    store: LectureStore = Depends(get_store),
    llm: LLMClient = Depends(get_generation_client),
) -> dict[str, Any]:
    request = await _read_request(video, transcript)
    logger.info("Processing %s upload (%d bytes) for %s", request.kind, request.size_bytes, principal.id)
    orchestrator = AnalysisOrchestrator(local=llm, stage_delay=0.0)
    try:
        bundle = await orchestrator.analyze(request)
    except AnalysisError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    store.put(bundle, owner_id=principal.id)
    return _envelope(_bundle_data(bundle))


@router.get("/lectures/{lecture_id}")
async def get_lecture(
    lecture_id: str,
    principal: Principal = Depends(require_principal),
    store: LectureStore = Depends(get_store),
) -> dict[str, Any]:
    return _envelope(_bundle_data(_get_lecture(store, lecture_id)))


@router.patch("/lectures/{lecture_id}/media")
async def attach_media(
    lecture_id: str,
    payload: MediaAttachRequest,
    principal: Principal = Depends(require_principal),
    store: LectureStore = Depends(get_store),
) -> dict[str, Any]:
    bundle = _get_lecture(store, lecture_id).with_media(payload.video_url)
    store.put(bundle, owner_id=principal.id)
    return _envelope(_bundle_data(bundle))


@router.post("/lectures/{lecture_id}/chat")
async def chat_with_lecture(
    lecture_id: str,
    payload: ChatRequest,
    principal: Principal = Depends(require_principal),
    store: LectureStore = Depends(get_store),
    llm: LLMClient = Depends(get_generation_client),
) -> dict[str, Any]:
    if not payload.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")
    bundle = _get_lecture(store, lecture_id)
    manager = ChatSessionManager(local=llm)
    try:
        answer = await manager.answer(bundle, payload.history, payload.message.strip())
    except Exception as exc:  # noqa: BLE001
        logger.error("Chat for lecture %s failed: %s", lecture_id, exc)
        raise HTTPException(status_code=500, detail="Failed to generate chat response")
    return _envelope(ChatAnswer(answer=answer).model_dump(mode="json"))


async def _run_analysis_job(
    job_id: str,
    request: AnalysisRequest,
    llm: LLMClient,
    store: LectureStore,
    owner_id: str,
) -> None:
    update_job(job_id, status=JobStatus.running, message="starting analysis")
    progress = ProgressReporter(lambda message: update_job(job_id, message=message))
    try:
        orchestrator = AnalysisOrchestrator(local=llm, stage_delay=0.0)
        bundle = await orchestrator.analyze(request, progress)
        store.put(bundle, owner_id=owner_id)
        update_job(job_id, status=JobStatus.succeeded, lecture_id=bundle.id)
    except Exception as exc:  # noqa: BLE001
        logger.error("Analysis job %s failed: %s", job_id, exc)
        update_job(job_id, status=JobStatus.failed, error=str(exc))


@router.post("/lectures/jobs", response_model=JobRead, status_code=202)
async def start_analysis_job(
    video: Optional[UploadFile] = File(default=None),
    transcript: Optional[str] = Form(default=None),
    principal: Principal = Depends(require_principal),
    store: LectureStore = Depends(get_store),
    llm: LLMClient = Depends(get_generation_client),
) -> JobRead:
    request = await _read_request(video, transcript)
    job = create_job(request.kind, owner_id=principal.id)
    asyncio.create_task(_run_analysis_job(job.id, request, llm, store, principal.id))
    return JobRead.model_validate(job)


@router.get("/jobs/{job_id}", response_model=JobRead)
async def get_job_status(job_id: str, principal: Principal = Depends(require_principal)) -> JobRead:
    job = get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobRead.model_validate(job)


def _sse(event: dict[str, Any]) -> str:
    return f"data: {json.dumps(event)}\n\n"


@router.post("/lectures/upload/stream")
async def upload_lecture_stream(
    video: Optional[UploadFile] = File(default=None),
    transcript: Optional[str] = Form(default=None),
    principal: Principal = Depends(require_principal),
    store: LectureStore = Depends(get_store),
    llm: LLMClient = Depends(get_generation_client),
) -> StreamingResponse:
    request = await _read_request(video, transcript)
    stream = ProgressStream()

    async def run() -> LectureBundle:
        try:
            orchestrator = AnalysisOrchestrator(local=llm, stage_delay=0.0)
            return await orchestrator.analyze(request, stream.push)
        finally:
            stream.close()

    async def events() -> AsyncIterator[str]:
        task = asyncio.create_task(run())
        async for message in stream:
            yield _sse({"type": "progress", "message": message})
        try:
            bundle = await task
        except AnalysisError as exc:
            yield _sse({"type": "error", "detail": str(exc)})
            return
        store.put(bundle, owner_id=principal.id)
        yield _sse({"type": "done", "data": _bundle_data(bundle)})

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("lecture_pilot.main:app", host="127.0.0.1", port=3001, reload=False)
