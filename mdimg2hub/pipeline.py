from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path

from mdimg2hub.classifier import ReferenceKind, classify_reference
from mdimg2hub.config import DestinationConfig
from mdimg2hub.rewriter import rewrite_document
from mdimg2hub.scanner import ImageReference, scan_references
from mdimg2hub.uploader import (
    AssetReadError,
    AssetUploader,
    DestinationError,
    UploadError,
    UploadResult,
)

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = "-processed"


@dataclass(frozen=True)
class PipelineOutcome:
    output_path: str | None
    replaced_count: int
    success: bool
    error: str | None = None
    error_class: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def build_output_path(document_path: Path) -> Path:
    document_path = Path(document_path)
    return document_path.with_name(f"{document_path.stem}{OUTPUT_SUFFIX}{document_path.suffix}")


def _failed(error: str, error_class: str, warnings: list[str] | None = None) -> PipelineOutcome:
    logger.error(error)
    return PipelineOutcome(
        output_path=None,
        replaced_count=0,
        success=False,
        error=error,
        error_class=error_class,
        warnings=list(warnings or []),
    )


def _write_output(document_path: Path, content: bytes) -> Path:
    output_path = build_output_path(document_path)
    output_path.write_bytes(content)
    return output_path


def process_document(
    document_path: Path | str,
    config: DestinationConfig,
    uploader: AssetUploader | None = None,
) -> PipelineOutcome:
    """Relocate every local image referenced by one Markdown document.

    References are handled one at a time in document order. Missing files and
    rejected uploads leave their reference untouched and are reported as
    warnings; only an unreadable or unwritable document, an invalid
    destination, or an unreachable repository fails the run.
    """
    document_path = Path(document_path)

    try:
        config.validate()
    except ValueError as exc:
        return _failed(str(exc), "configuration")

    try:
        content = document_path.read_bytes()
    except OSError as exc:
        return _failed(f"Error reading file {document_path}: {exc}", "document")

    references = scan_references(content)
    if not references:
        try:
            output_path = _write_output(document_path, content)
        except OSError as exc:
            return _failed(f"Error writing output file: {exc}", "document")
        return PipelineOutcome(output_path=str(output_path), replaced_count=0, success=True)

    uploader = uploader or AssetUploader(config)
    replacements: list[tuple[ImageReference, UploadResult]] = []
    warnings: list[str] = []

    for reference in references:
        classified = classify_reference(reference, document_path)
        if classified.kind is ReferenceKind.REMOTE:
            continue
        if classified.skip_reason:
            warnings.append(classified.skip_reason)
            continue

        try:
            result = uploader.upload(classified.local_path)
        except DestinationError as exc:
            return _failed(str(exc), "destination", warnings)
        except (AssetReadError, UploadError) as exc:
            message = f"Failed to upload image {classified.local_path}: {exc}"
            logger.warning(message)
            warnings.append(message)
            continue

        replacements.append((reference, result))
        logger.info("Replaced: %s -> %s", reference.target, result.public_url)

    rewritten = rewrite_document(content, replacements)
    try:
        output_path = _write_output(document_path, rewritten)
    except OSError as exc:
        return _failed(f"Error writing output file: {exc}", "document", warnings)

    return PipelineOutcome(
        output_path=str(output_path),
        replaced_count=len(replacements),
        success=True,
        warnings=warnings,
    )
