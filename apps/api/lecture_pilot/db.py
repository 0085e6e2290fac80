from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy.exc import OperationalError
from sqlmodel import Session, SQLModel, create_engine

from .config import settings

logger = logging.getLogger(__name__)

_engine = None


def _build_engine(db_path: Path):
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )


def ensure_engine() -> None:
    global _engine
    if _engine is not None:
        return
    try:
        _engine = _build_engine(settings.db_path)
        SQLModel.metadata.create_all(_engine)
    except (OSError, OperationalError) as exc:
        # Read-only deployments: fall back to a scratch location.
        fallback = Path("/tmp/lecture_pilot/lectures.db")
        logger.warning("Database at %s unavailable (%s); using %s", settings.db_path, exc, fallback)
        settings.db_path = fallback
        _engine = _build_engine(fallback)
        SQLModel.metadata.create_all(_engine)


def init_db(db_path: Optional[Path] = None) -> None:
    global _engine
    if db_path is not None:
        settings.db_path = db_path
        _engine = None
    ensure_engine()


@contextmanager
def get_session() -> Iterator[Session]:
    ensure_engine()
    with Session(_engine) as session:
        yield session
