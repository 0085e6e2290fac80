from __future__ import annotations

from datetime import datetime
from typing import Protocol

from sqlmodel import select

from .db import get_session
from .errors import NotFoundError
from .models import LectureRecord
from .schemas import LectureBundle


class LectureStore(Protocol):
    def get(self, lecture_id: str) -> LectureBundle:
        ...

    def put(self, bundle: LectureBundle, owner_id: str = "guest") -> None:
        ...


class InMemoryLectureStore:
    def __init__(self) -> None:
        self._lectures: dict[str, LectureBundle] = {}

    def get(self, lecture_id: str) -> LectureBundle:
        try:
            return self._lectures[lecture_id]
        except KeyError:
            raise NotFoundError(f"Lecture {lecture_id} not found") from None

    def put(self, bundle: LectureBundle, owner_id: str = "guest") -> None:
        self._lectures[bundle.id] = bundle


class SqlLectureStore:
    """Keeps each bundle as a JSON document in the ``lecturerecord`` table."""

    def get(self, lecture_id: str) -> LectureBundle:
        with get_session() as session:
            record = session.exec(select(LectureRecord).where(LectureRecord.id == lecture_id)).first()
            if not record:
                raise NotFoundError(f"Lecture {lecture_id} not found")
            return LectureBundle.model_validate_json(record.payload)

    def put(self, bundle: LectureBundle, owner_id: str = "guest") -> None:
        payload = bundle.model_dump_json(by_alias=True)
        with get_session() as session:
            record = session.get(LectureRecord, bundle.id)
            if record is None:
                record = LectureRecord(id=bundle.id, title=bundle.title, owner_id=owner_id, payload=payload)
            else:
                record.title = bundle.title
                record.payload = payload
                record.updated_at = datetime.utcnow()
            session.add(record)
            session.commit()
