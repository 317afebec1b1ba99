from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from mdimg2hub.scanner import ImageReference

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = ("http://", "https://")


class ReferenceKind(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


@dataclass(frozen=True)
class ClassifiedReference:
    reference: ImageReference
    kind: ReferenceKind
    local_path: Path | None = None
    skip_reason: str | None = None

    @property
    def needs_upload(self) -> bool:
        return self.kind is ReferenceKind.LOCAL and self.skip_reason is None


def is_remote_target(target: str) -> bool:
    return target.startswith(REMOTE_SCHEMES)


def resolve_local_path(target: str, document_path: Path) -> Path:
    if os.path.isabs(target):
        return Path(target)
    return Path(document_path).parent / target


def _skipped(reference: ImageReference, local_path: Path, message: str) -> ClassifiedReference:
    logger.warning("%s", message)
    return ClassifiedReference(
        reference=reference,
        kind=ReferenceKind.LOCAL,
        local_path=local_path,
        skip_reason=message,
    )


def classify_reference(reference: ImageReference, document_path: Path) -> ClassifiedReference:
    if is_remote_target(reference.target):
        return ClassifiedReference(reference=reference, kind=ReferenceKind.REMOTE)

    local_path = resolve_local_path(reference.target, document_path)
    try:
        exists = local_path.exists()
        is_file = exists and local_path.is_file()
    except OSError as exc:
        # ENAMETOOLONG, EACCES and friends are not swallowed by pathlib.
        return _skipped(reference, local_path, f"Image file cannot be checked: {local_path}: {exc}")

    if not exists:
        return _skipped(reference, local_path, f"Image file not found: {local_path}")
    if not is_file:
        return _skipped(reference, local_path, f"Image path is not a file: {local_path}")

    return ClassifiedReference(reference=reference, kind=ReferenceKind.LOCAL, local_path=local_path)
