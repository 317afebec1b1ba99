import io
import zipfile
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from mdimg2hub.app import app
from mdimg2hub.config import DestinationConfig
from mdimg2hub.github_client import GitHubResponse


def _zip_bytes(entries: dict[str, bytes]) -> bytes:
    payload = io.BytesIO()
    with zipfile.ZipFile(payload, mode="w") as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return payload.getvalue()


def _fake_host(repo_status=200):
    def _send(method, url, payload, headers, timeout):
        if method == "GET":
            return GitHubResponse(status=repo_status, payload={"message": "Not Found"})
        return GitHubResponse(status=201, payload={"content": {"download_url": "https://raw.example/x"}})

    return _send


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("MDIMG2HUB_WORKSPACE_DIR", str(tmp_path / "workspace"))
    monkeypatch.setattr(
        "mdimg2hub.app.DESTINATION_CONFIG",
        DestinationConfig(token="tok", owner="octo", repo="assets"),
    )
    return TestClient(app)


def test_health_endpoint_ok(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_index_serves_upload_form(client):
    response = client.get("/")

    assert response.status_code == 200
    assert 'name="zipFile"' in response.text


def test_upload_processes_bundle_and_result_downloads(client):
    bundle = _zip_bytes({"post/readme.md": b"![a](img/x.png)\ntext\n![b](http://host/y.png)", "post/img/x.png": b"png"})

    with patch("mdimg2hub.github_client._send_json", side_effect=_fake_host()):
        response = client.post("/upload", files={"zipFile": ("bundle.zip", bundle, "application/zip")})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["original_file"] == "readme.md"
    assert payload["image_count"] == 1
    assert payload["processed_file"].endswith("post/readme-processed.md")

    download = client.get(payload["download_url"])
    assert download.status_code == 200
    assert "attachment" in download.headers["content-disposition"]
    assert download.content.startswith(b"![a](https://cdn.jsdelivr.net/gh/octo/assets@main/images/")
    assert download.content.endswith(b"\ntext\n![b](http://host/y.png)")


def test_upload_rejects_non_zip(client):
    response = client.post("/upload", files={"zipFile": ("notes.md", b"# hi", "text/markdown")})

    assert response.status_code == 415
    assert response.json()["success"] is False


def test_upload_rejects_empty_file(client):
    response = client.post("/upload", files={"zipFile": ("bundle.zip", b"", "application/zip")})

    assert response.status_code == 400
    assert "Empty uploads" in response.json()["error"]


def test_upload_without_markdown_is_rejected(client):
    bundle = _zip_bytes({"img/x.png": b"png"})

    response = client.post("/upload", files={"zipFile": ("bundle.zip", bundle, "application/zip")})

    assert response.status_code == 400
    assert "No Markdown files" in response.json()["error"]


def test_upload_rejects_path_traversal(client, tmp_path):
    bundle = _zip_bytes({"../../escape.md": b"evil"})

    response = client.post("/upload", files={"zipFile": ("bundle.zip", bundle, "application/zip")})

    assert response.status_code == 400
    assert "Invalid file path" in response.json()["error"]
    assert not (tmp_path / "escape.md").exists()


def test_upload_reports_missing_repository(client):
    bundle = _zip_bytes({"readme.md": b"![a](x.png)", "x.png": b"png"})

    with patch("mdimg2hub.github_client._send_json", side_effect=_fake_host(repo_status=404)):
        response = client.post("/upload", files={"zipFile": ("bundle.zip", bundle, "application/zip")})

    assert response.status_code == 502
    payload = response.json()
    assert payload["success"] is False
    assert "octo/assets not found" in payload["error"]


def test_download_requires_file_parameter(client):
    assert client.get("/download").status_code == 400


def test_download_rejects_paths_outside_workspace(client):
    response = client.get("/download", params={"file": "../../etc/passwd"})

    assert response.status_code == 400


def test_download_missing_file_is_404(client):
    response = client.get("/download", params={"file": "unknown/readme-processed.md"})

    assert response.status_code == 404


@pytest.mark.parametrize("document_name", ["c++ notes.md", "a&b #1.md"])
def test_download_url_survives_special_characters(client, document_name):
    bundle = _zip_bytes({document_name: b"![a](x.png)", "x.png": b"png"})

    with patch("mdimg2hub.github_client._send_json", side_effect=_fake_host()):
        response = client.post("/upload", files={"zipFile": ("bundle.zip", bundle, "application/zip")})

    payload = response.json()
    assert response.status_code == 200
    assert payload["processed_file"].endswith(document_name.replace(".md", "-processed.md"))

    download = client.get(payload["download_url"])
    assert download.status_code == 200
    assert download.content.startswith(b"![a](https://cdn.jsdelivr.net/gh/octo/assets@main/images/")


def test_extraction_filesystem_failure_returns_structured_error(client):
    bundle = _zip_bytes({"readme.md": b"text"})

    def _failing_extract(archive_path, destination_dir):
        raise PermissionError(13, "Permission denied", str(destination_dir))

    with patch("mdimg2hub.app.extract_archive", side_effect=_failing_extract):
        response = client.post("/upload", files={"zipFile": ("bundle.zip", bundle, "application/zip")})

    assert response.status_code == 500
    payload = response.json()
    assert payload["success"] is False
    assert "Failed to extract ZIP archive" in payload["error"]
