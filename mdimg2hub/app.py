from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlencode

from fastapi import FastAPI, File, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from pydantic import BaseModel, Field

from mdimg2hub.archive import ArchiveError, extract_archive, find_first_document
from mdimg2hub.config import DestinationConfig, load_destination_config
from mdimg2hub.pipeline import PipelineOutcome, process_document
from mdimg2hub.workspace import (
    create_run_workspace,
    relative_to_workspace,
    remove_run_workspace,
    resolve_workspace_file,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Markdown Image Relocation API")

# Set by `mdimg2hub serve`; when unset the environment is read per request.
DESTINATION_CONFIG: DestinationConfig | None = None

INDEX_HTML = """<!doctype html>
<html>
  <head><meta charset="utf-8"><title>mdimg2hub</title></head>
  <body>
    <h1>Upload Markdown bundle</h1>
    <p>ZIP archive with one Markdown file and the images it references.</p>
    <form action="/upload" method="post" enctype="multipart/form-data">
      <input type="file" name="zipFile" accept=".zip" required>
      <button type="submit">Upload</button>
    </form>
  </body>
</html>
"""


class ProcessResultModel(BaseModel):
    status: str
    message: str
    warnings: list[str] = Field(default_factory=list)
    original_file: str | None = None
    processed_file: str | None = None
    download_url: str | None = None
    image_count: int = 0
    success: bool = False
    error: str | None = None


def _destination_config() -> DestinationConfig:
    return DESTINATION_CONFIG or load_destination_config()


def _error_response(status_code: int, message: str, *, original_file: str | None = None, warnings=None):
    payload = ProcessResultModel(
        status="error",
        message=message,
        warnings=list(warnings or []),
        original_file=original_file,
        success=False,
        error=message,
    )
    return JSONResponse(status_code=status_code, content=payload.model_dump())


def _run_bundle(archive_path: Path, extract_dir: Path) -> tuple[Path, PipelineOutcome]:
    extracted = extract_archive(archive_path, extract_dir)
    document = find_first_document(extracted)
    if document is None:
        raise ArchiveError("No Markdown files found in the ZIP archive.")
    return document, process_document(document, _destination_config())


@app.get("/", response_class=HTMLResponse)
def index():
    return INDEX_HTML


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.post("/upload")
async def upload_bundle(zip_file: UploadFile = File(..., alias="zipFile")):
    filename = Path(zip_file.filename or "").name
    if not filename.lower().endswith(".zip"):
        return _error_response(415, "Only ZIP files are supported.", original_file=filename or None)

    content = await zip_file.read()
    if not content:
        return _error_response(400, "Empty uploads are not allowed.", original_file=filename)

    try:
        _, workspace = create_run_workspace()
    except (OSError, ValueError) as exc:
        return _error_response(500, f"Failed to create workspace: {exc}", original_file=filename)

    archive_path = workspace / filename
    try:
        archive_path.write_bytes(content)
    except OSError as exc:
        remove_run_workspace(workspace)
        return _error_response(500, f"Failed to save uploaded file: {exc}", original_file=filename)

    try:
        document, outcome = await run_in_threadpool(_run_bundle, archive_path, workspace / "extract")
    except ArchiveError as exc:
        remove_run_workspace(workspace)
        return _error_response(400, str(exc), original_file=filename)
    except OSError as exc:
        remove_run_workspace(workspace)
        return _error_response(500, f"Failed to extract ZIP archive: {exc}", original_file=filename)

    if not outcome.success:
        logger.error("Processing %s failed: %s", filename, outcome.error)
        status_code = 502 if outcome.error_class == "destination" else 500
        return _error_response(
            status_code,
            outcome.error or "Failed to process Markdown file.",
            original_file=document.name,
            warnings=outcome.warnings,
        )

    processed_file = relative_to_workspace(Path(outcome.output_path))
    payload = ProcessResultModel(
        status="warning" if outcome.warnings else "success",
        message="Processed Markdown file.",
        warnings=outcome.warnings,
        original_file=document.name,
        processed_file=processed_file,
        download_url=f"/download?{urlencode({'file': processed_file})}",
        image_count=outcome.replaced_count,
        success=True,
    )
    return payload.model_dump()


@app.get("/download")
def download_result(file: str | None = Query(None)):
    try:
        path = resolve_workspace_file(file or "")
    except ValueError as exc:
        return JSONResponse(status_code=400, content={"status": "error", "message": str(exc)})

    if not path.is_file():
        return JSONResponse(status_code=404, content={"status": "warning", "message": "File not found."})

    return FileResponse(
        path=path,
        media_type="application/octet-stream",
        filename=path.name,
        content_disposition_type="attachment",
    )
