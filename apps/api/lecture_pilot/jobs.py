from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import select

from .db import get_session
from .models import Job, JobStatus


def create_job(kind: str, owner_id: str = "guest") -> Job:
    job = Job(kind=kind, owner_id=owner_id)
    with get_session() as session:
        session.add(job)
        session.commit()
        session.refresh(job)
    return job


def update_job(
    job_id: str,
    *,
    status: Optional[JobStatus] = None,
    message: Optional[str] = None,
    lecture_id: Optional[str] = None,
    error: Optional[str] = None,
) -> Job:
    with get_session() as session:
        job = session.exec(select(Job).where(Job.id == job_id)).first()
        if not job:
            raise ValueError("Job not found")
        if status is not None:
            job.status = status
        if message is not None:
            job.message = message
        if lecture_id is not None:
            job.lecture_id = lecture_id
        if error is not None:
            job.error = error
        job.updated_at = datetime.utcnow()
        session.add(job)
        session.commit()
        session.refresh(job)
        return job


def get_job(job_id: str) -> Optional[Job]:
    with get_session() as session:
        return session.exec(select(Job).where(Job.id == job_id)).first()
