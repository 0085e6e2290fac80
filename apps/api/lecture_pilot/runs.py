from __future__ import annotations

from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from .config import settings
from .storage import atomic_write_json, iso_now


def save_run(
    run_type: str,
    prompt: str,
    response: Any,
    model: str,
    meta: Optional[dict] = None,
    runs_dir: Optional[Path] = None,
) -> Path:
    run_folder = runs_dir or settings.runs_dir
    timestamp = iso_now().replace(":", "-")
    path = run_folder / f"{timestamp}-{run_type}-{uuid4().hex[:8]}.json"
    payload = {
        "run_type": run_type,
        "timestamp": iso_now(),
        "model": model,
        "prompt": prompt,
        "response": response,
        "meta": meta or {},
    }
    atomic_write_json(path, payload)
    return path
