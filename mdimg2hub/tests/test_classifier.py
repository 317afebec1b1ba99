from pathlib import Path

from mdimg2hub.classifier import ReferenceKind, classify_reference, is_remote_target, resolve_local_path
from mdimg2hub.scanner import ImageReference


def _reference(target: str) -> ImageReference:
    return ImageReference(alt_text="alt", target=target, span_start=0, span_end=len(target) + 7)


def test_http_and_https_targets_are_remote(tmp_path):
    document = tmp_path / "doc.md"

    for target in ("http://host/y.png", "https://cdn.example/x.png"):
        classified = classify_reference(_reference(target), document)
        assert classified.kind is ReferenceKind.REMOTE
        assert classified.local_path is None
        assert classified.needs_upload is False


def test_scheme_check_is_case_sensitive():
    assert is_remote_target("https://example.com/a.png")
    assert not is_remote_target("HTTPS://example.com/a.png")
    assert not is_remote_target("ftp://example.com/a.png")


def test_relative_target_resolves_against_document_directory(tmp_path):
    (tmp_path / "img").mkdir()
    image = tmp_path / "img" / "x.png"
    image.write_bytes(b"\x89PNG\r\n\x1a\n")

    classified = classify_reference(_reference("img/x.png"), tmp_path / "doc.md")

    assert classified.kind is ReferenceKind.LOCAL
    assert classified.local_path == image
    assert classified.skip_reason is None
    assert classified.needs_upload is True


def test_absolute_target_is_used_verbatim(tmp_path):
    image = tmp_path / "absolute.png"
    image.write_bytes(b"data")

    classified = classify_reference(_reference(str(image)), tmp_path / "nested" / "doc.md")

    assert classified.local_path == Path(str(image))
    assert classified.needs_upload is True


def test_missing_local_file_is_a_skip_not_an_error(tmp_path, caplog):
    classified = classify_reference(_reference("img/missing.png"), tmp_path / "doc.md")

    assert classified.kind is ReferenceKind.LOCAL
    assert classified.needs_upload is False
    assert "Image file not found" in classified.skip_reason
    assert any("Image file not found" in record.getMessage() for record in caplog.records)


def test_resolve_local_path_keeps_relative_segments(tmp_path):
    resolved = resolve_local_path("../shared/pic.png", tmp_path / "docs" / "doc.md")

    assert resolved == tmp_path / "docs" / ".." / "shared" / "pic.png"


def test_overlong_target_is_skipped_instead_of_raising(tmp_path):
    classified = classify_reference(_reference("x" * 300 + ".png"), tmp_path / "doc.md")

    assert classified.kind is ReferenceKind.LOCAL
    assert classified.needs_upload is False
    assert classified.skip_reason


def test_directory_target_is_skipped(tmp_path):
    (tmp_path / "img").mkdir()

    classified = classify_reference(_reference("img/"), tmp_path / "doc.md")

    assert classified.needs_upload is False
    assert "not a file" in classified.skip_reason
