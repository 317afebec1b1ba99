from __future__ import annotations

import zipfile
import zlib
from pathlib import Path
from typing import Iterable

DOCUMENT_EXTENSIONS = {".md", ".markdown"}
ARCHIVE_MAX_ENTRY_SIZE_BYTES = 50 * 1024 * 1024
ARCHIVE_MAX_TOTAL_UNCOMPRESSED_BYTES = 200 * 1024 * 1024
ARCHIVE_MAX_COMPRESSION_RATIO = 200


class ArchiveError(ValueError):
    """The bundle is not a usable ZIP archive."""


def _is_unsafe_archive_name(name: str) -> bool:
    normalized = name.replace("\\", "/")
    if normalized.startswith("/"):
        return True
    parts = [segment for segment in normalized.split("/") if segment]
    if parts and ":" in parts[0]:
        return True
    return any(segment == ".." for segment in parts)


def _resolve_member_path(destination: Path, name: str) -> Path:
    if _is_unsafe_archive_name(name):
        raise ArchiveError(f"Invalid file path: {name}")

    target = (destination / name.replace("\\", "/")).resolve()
    if destination not in target.parents and target != destination:
        raise ArchiveError(f"Invalid file path: {name}")
    return target


def _check_limits(members: list[zipfile.ZipInfo]) -> None:
    total = 0
    for member in members:
        if member.file_size > ARCHIVE_MAX_ENTRY_SIZE_BYTES:
            raise ArchiveError(f"Archive entry {member.filename} exceeds the size limit.")
        if member.compress_size and member.file_size / member.compress_size > ARCHIVE_MAX_COMPRESSION_RATIO:
            raise ArchiveError(f"Archive entry {member.filename} has a suspicious compression ratio.")
        total += member.file_size
    if total > ARCHIVE_MAX_TOTAL_UNCOMPRESSED_BYTES:
        raise ArchiveError("Archive exceeds the total uncompressed size limit.")


def extract_archive(archive_path: Path, destination_dir: Path) -> list[Path]:
    """Extract a ZIP bundle, refusing any entry that would land outside `destination_dir`.

    Every entry is validated before the first byte is written, so a rejected
    archive leaves nothing behind.
    """
    destination = Path(destination_dir).resolve()
    destination.mkdir(parents=True, exist_ok=True)

    try:
        archive = zipfile.ZipFile(archive_path)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ArchiveError(f"Failed to open ZIP archive: {exc}") from exc

    extracted: list[Path] = []
    with archive:
        members = archive.infolist()
        _check_limits(members)
        planned = [(member, _resolve_member_path(destination, member.filename)) for member in members]

        for member, target in planned:
            if member.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            try:
                with archive.open(member) as source, target.open("wb") as sink:
                    while True:
                        chunk = source.read(1024 * 1024)
                        if not chunk:
                            break
                        sink.write(chunk)
            except (zipfile.BadZipFile, zlib.error, OSError) as exc:
                raise ArchiveError(f"Failed to extract {member.filename}: {exc}") from exc
            extracted.append(target)

    return extracted


def is_document(path: Path) -> bool:
    return Path(path).suffix.lower() in DOCUMENT_EXTENSIONS


def find_first_document(paths: Iterable[Path]) -> Path | None:
    candidates = sorted((Path(path) for path in paths if is_document(path)), key=lambda item: item.as_posix())
    if not candidates:
        return None
    return candidates[0]
