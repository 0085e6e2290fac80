from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional, Union

from .config import settings
from .contract import audit_bundle, build_bundle, parse_lecture_payload
from .errors import AnalysisError
from .llm import LLMClient
from .normalizer import normalize
from .progress import ProgressCallback, ProgressReporter
from .prompts import ANALYSIS_SYSTEM_PROMPT, analysis_user_content
from .remote import RemoteLectureService
from .runs import save_run
from .schemas import AnalysisRequest, LectureBundle, LecturePayload
from .transcription import PlaceholderTranscriber, TranscriptProducer

logger = logging.getLogger(__name__)

PREPARING = "Preparing upload..."
PROCESSING = "Processing lecture content..."
FALLING_BACK = "Server unavailable. Switching to local analysis..."
ANALYZING_STRUCTURE = "Analyzing video structure..."
EXTRACTING_AUDIO = "Extracting audio data..."
GENERATING = "Generating notes, quiz, and flashcards..."
DONE = "Done."

Progress = Union[ProgressReporter, ProgressCallback, None]


def _reporter(on_progress: Progress) -> ProgressReporter:
    if isinstance(on_progress, ProgressReporter):
        return on_progress
    return ProgressReporter(on_progress)


class AnalysisOrchestrator:
    """Turns an ``AnalysisRequest`` into a ``LectureBundle``.

    The remote service is tried first under ``primary_timeout``. Any failure
    there (timeout, connection error, bad status, malformed payload) switches to
    the local generation client; only when that fails too is ``AnalysisError``
    raised. Without a remote, the local path runs directly.
    """

    def __init__(
        self,
        local: LLMClient,
        remote: Optional[RemoteLectureService] = None,
        transcriber: Optional[TranscriptProducer] = None,
        primary_timeout: Optional[float] = None,
        stage_delay: Optional[float] = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self.transcriber = transcriber or PlaceholderTranscriber()
        self.primary_timeout = (
            primary_timeout if primary_timeout is not None else settings.analysis_primary_timeout_seconds
        )
        self.stage_delay = (
            stage_delay if stage_delay is not None else settings.simulated_stage_delay_seconds
        )

    async def analyze_content(
        self,
        content: Union[str, bytes],
        content_type: Optional[str] = None,
        filename: Optional[str] = None,
        on_progress: Progress = None,
    ) -> LectureBundle:
        request = normalize(content, content_type=content_type, filename=filename)
        return await self.analyze(request, on_progress)

    async def analyze(self, request: AnalysisRequest, on_progress: Progress = None) -> LectureBundle:
        progress = _reporter(on_progress)
        progress.emit(PREPARING)
        failures: list[str] = []

        if self.remote is not None:
            bundle = await self._try_primary(request, progress, failures)
            if bundle is not None:
                progress.emit(DONE)
                return bundle
            progress.emit(FALLING_BACK)

        bundle = await self._run_secondary(request, progress, failures)
        progress.emit(DONE)
        return bundle

    async def _try_primary(
        self,
        request: AnalysisRequest,
        progress: ProgressReporter,
        failures: list[str],
    ) -> Optional[LectureBundle]:
        assert self.remote is not None
        progress.emit(PROCESSING)
        started = time.monotonic()
        try:
            data = await asyncio.wait_for(self.remote.analyze(request), timeout=self.primary_timeout)
            payload = parse_lecture_payload(data)
        except asyncio.TimeoutError:
            failures.append(f"primary: timed out after {self.primary_timeout:.1f}s")
            logger.warning("Primary analysis timed out after %.1fs", self.primary_timeout)
            return None
        except Exception as exc:  # noqa: BLE001
            failures.append(f"primary: {type(exc).__name__}: {exc}")
            logger.warning("Primary analysis failed: %s: %s", type(exc).__name__, exc)
            return None

        logger.info("Primary analysis succeeded in %.2fs", time.monotonic() - started)
        transcript = payload.transcript or (request.text if request.kind == "text" else None)
        lecture_id = data.get("id") if isinstance(data, dict) else None
        return self._finish(payload, lecture_id=str(lecture_id) if lecture_id else None, transcript=transcript)

    async def _acquire_transcript(self, request: AnalysisRequest, progress: ProgressReporter) -> str:
        if request.kind == "text":
            return request.text or ""
        progress.emit(ANALYZING_STRUCTURE)
        await asyncio.sleep(self.stage_delay)
        progress.emit(EXTRACTING_AUDIO)
        await asyncio.sleep(self.stage_delay)
        return await self.transcriber.transcribe(request)

    async def _run_secondary(
        self,
        request: AnalysisRequest,
        progress: ProgressReporter,
        failures: list[str],
    ) -> LectureBundle:
        started = time.monotonic()
        try:
            transcript = await self._acquire_transcript(request, progress)
            progress.emit(GENERATING)
            content = analysis_user_content(transcript[: settings.max_transcript_chars])
            raw = await self.local.generate(ANALYSIS_SYSTEM_PROMPT, LecturePayload, content)
            payload = parse_lecture_payload(raw)
        except Exception as exc:  # noqa: BLE001
            failures.append(f"local ({self.local.name}): {type(exc).__name__}: {exc}")
            logger.error("Local analysis failed: %s", "; ".join(failures))
            raise AnalysisError("Failed to analyze content (all analysis paths failed).", failures) from exc

        logger.info(
            "Local analysis with %s succeeded in %.2fs", self.local.name, time.monotonic() - started
        )
        if settings.record_runs:
            save_run(
                "analysis",
                content,
                raw,
                self.local.model or self.local.name,
                meta={"kind": request.kind, "size_bytes": request.size_bytes, "failures": failures},
            )
        return self._finish(payload, lecture_id=None, transcript=transcript)

    def _finish(
        self,
        payload: LecturePayload,
        lecture_id: Optional[str],
        transcript: Optional[str],
    ) -> LectureBundle:
        bundle = build_bundle(payload, lecture_id=lecture_id, transcript=transcript)
        for issue in audit_bundle(bundle):
            logger.warning("Lecture %s: %s %s", bundle.id, issue.field, issue.message)
        return bundle
