from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from sqlmodel import Field, SQLModel


class JobStatus(str, Enum):
    queued = "queued"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"


class LectureRecord(SQLModel, table=True):
    id: str = Field(primary_key=True)
    title: str
    owner_id: str = Field(default="guest", index=True)
    payload: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Job(SQLModel, table=True):
    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    owner_id: str = Field(default="guest", index=True)
    kind: str = "text"
    status: JobStatus = JobStatus.queued
    message: Optional[str] = None
    lecture_id: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class JobRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    kind: str
    status: JobStatus
    message: Optional[str] = None
    lecture_id: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
