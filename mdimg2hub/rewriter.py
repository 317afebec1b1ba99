from __future__ import annotations

from typing import Iterable

from mdimg2hub.scanner import ImageReference
from mdimg2hub.uploader import UploadResult


def render_reference(reference: ImageReference, public_url: str) -> bytes:
    return b"![" + reference.alt_bytes + b"](" + public_url.encode("utf-8") + b")"


def rewrite_document(
    content: bytes,
    replacements: Iterable[tuple[ImageReference, UploadResult]],
) -> bytes:
    """Return a copy of `content` with each given reference pointing at its upload.

    Edits are applied by recorded span, highest span first, so earlier offsets
    stay valid and two references with identical text are each replaced
    exactly once. Bytes outside the replaced spans are copied unchanged.
    """
    ordered = sorted(replacements, key=lambda pair: pair[0].span_start, reverse=True)

    rewritten = bytearray(content)
    boundary = len(content)
    for reference, result in ordered:
        if reference.span_start < 0 or reference.span_end > boundary:
            raise ValueError(
                f"Reference span {reference.span_start}-{reference.span_end} "
                "is out of range or overlaps another replacement."
            )
        if reference.span_start >= reference.span_end:
            raise ValueError(f"Reference span {reference.span_start}-{reference.span_end} is empty.")
        rewritten[reference.span_start:reference.span_end] = render_reference(reference, result.public_url)
        boundary = reference.span_start

    return bytes(rewritten)
