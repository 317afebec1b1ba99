from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from uuid import uuid4

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 24 * 60 * 60


def workspace_root() -> Path:
    configured = os.getenv("MDIMG2HUB_WORKSPACE_DIR")
    if configured and configured.strip():
        return Path(configured.strip())
    return Path(tempfile.gettempdir()) / "mdimg2hub"


def workspace_max_age_seconds() -> float:
    raw = os.getenv("MDIMG2HUB_WORKSPACE_MAX_AGE")
    if raw is None or not raw.strip():
        return DEFAULT_MAX_AGE_SECONDS
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid workspace max age '{raw}'.") from exc


def prune_run_workspaces(max_age_seconds: float | None = None, *, now: float | None = None) -> list[Path]:
    """Delete run directories older than `max_age_seconds`; a value <= 0 keeps everything."""
    max_age = workspace_max_age_seconds() if max_age_seconds is None else max_age_seconds
    root = workspace_root()
    if max_age <= 0 or not root.is_dir():
        return []

    cutoff = (time.time() if now is None else now) - max_age
    removed: list[Path] = []
    for entry in root.iterdir():
        try:
            if not entry.is_dir() or entry.stat().st_mtime >= cutoff:
                continue
        except OSError:
            continue
        shutil.rmtree(entry, ignore_errors=True)
        removed.append(entry)

    if removed:
        logger.info("Pruned %d expired run workspace(s) under %s", len(removed), root)
    return removed


def create_run_workspace() -> tuple[str, Path]:
    """Create an isolated directory for one run and return `(run_id, path)`.

    Run directories older than `MDIMG2HUB_WORKSPACE_MAX_AGE` seconds (one day
    by default) are removed first.
    """
    prune_run_workspaces()
    run_id = uuid4().hex
    path = workspace_root() / run_id
    path.mkdir(parents=True, exist_ok=False)
    return run_id, path


def remove_run_workspace(path: Path) -> None:
    shutil.rmtree(path, ignore_errors=True)


def relative_to_workspace(path: Path) -> str:
    return Path(path).resolve().relative_to(workspace_root().resolve()).as_posix()


def resolve_workspace_file(relative: str) -> Path:
    """Map a client-supplied relative path back to a file inside the workspace root."""
    cleaned = (relative or "").strip()
    if not cleaned:
        raise ValueError("No file specified.")

    root = workspace_root().resolve()
    candidate = (root / cleaned).resolve()
    if candidate == root or root not in candidate.parents:
        raise ValueError(f"Invalid file path: {relative}")
    return candidate
