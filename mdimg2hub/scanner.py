from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

REFERENCE_OPEN = b"!["
ALT_CLOSE = b"]("
TARGET_CLOSE = b")"
LINE_END = b"\n"


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="surrogateescape")


@dataclass(frozen=True)
class ImageReference:
    """One `![alt](target)` occurrence with byte offsets into the document."""

    alt_text: str
    target: str
    span_start: int
    span_end: int

    @property
    def alt_bytes(self) -> bytes:
        return self.alt_text.encode("utf-8", errors="surrogateescape")

    @property
    def target_bytes(self) -> bytes:
        return self.target.encode("utf-8", errors="surrogateescape")


def _match_at(content: bytes, start: int) -> ImageReference | None:
    line_end = content.find(LINE_END, start)
    if line_end < 0:
        line_end = len(content)

    alt_start = start + len(REFERENCE_OPEN)
    alt_end = content.find(ALT_CLOSE, alt_start, line_end)
    if alt_end < 0:
        return None

    target_start = alt_end + len(ALT_CLOSE)
    target_end = content.find(TARGET_CLOSE, target_start, line_end)
    if target_end < 0:
        return None

    return ImageReference(
        alt_text=_decode(content[alt_start:alt_end]),
        target=_decode(content[target_start:target_end]),
        span_start=start,
        span_end=target_end + len(TARGET_CLOSE),
    )


def iter_references(content: bytes) -> Iterator[ImageReference]:
    """Yield image references in document order.

    Alt text runs to the first `](` and the target to the first `)` after it,
    both on the same line as the opening `![`. A candidate without both
    delimiters on its line is dropped and scanning resumes one byte later.
    After a match, scanning resumes at the end of the match, so spans never
    overlap.
    """
    position = 0
    while True:
        start = content.find(REFERENCE_OPEN, position)
        if start < 0:
            return

        reference = _match_at(content, start)
        if reference is None:
            position = start + 1
            continue

        yield reference
        position = reference.span_end


def scan_references(content: bytes | str) -> list[ImageReference]:
    if isinstance(content, str):
        content = content.encode("utf-8", errors="surrogateescape")
    return list(iter_references(content))
