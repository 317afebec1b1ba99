from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Any
from urllib import error, parse, request

from mdimg2hub.config import DestinationConfig


class GitHubTransportError(RuntimeError):
    """The contents API could not be reached or returned unreadable data."""


@dataclass(frozen=True)
class GitHubResponse:
    status: int
    payload: dict[str, Any]
    reason: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def describe(self) -> str:
        message = self.payload.get("message") if isinstance(self.payload, dict) else None
        label = f"HTTP {self.status}" + (f" {self.reason}" if self.reason else "")
        if isinstance(message, str) and message.strip():
            return f"{label}: {message.strip()}"
        return label


def _decode_body(raw: bytes) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw.decode("utf-8", errors="replace"))
    except json.JSONDecodeError:
        return {"message": raw[:200].decode("utf-8", errors="replace")}
    if isinstance(parsed, dict):
        return parsed
    return {"items": parsed}


def _send_json(
    method: str,
    url: str,
    payload: dict[str, Any] | None,
    headers: dict[str, str],
    timeout: float,
) -> GitHubResponse:
    body = json.dumps(payload).encode("utf-8") if payload is not None else None
    req = request.Request(url, data=body, headers=headers, method=method)
    try:
        with request.urlopen(req, timeout=timeout) as response:
            return GitHubResponse(
                status=response.status,
                payload=_decode_body(response.read()),
                reason=response.reason or "",
            )
    except error.HTTPError as exc:
        try:
            raw = exc.read()
        except OSError:
            raw = b""
        return GitHubResponse(status=exc.code, payload=_decode_body(raw), reason=str(exc.reason or ""))
    except (error.URLError, TimeoutError, OSError) as exc:
        raise GitHubTransportError(f"Unable to reach GitHub API at {url}: {exc}") from exc


class GitHubContentsClient:
    """Thin wrapper around the two repository endpoints the uploader needs."""

    def __init__(self, config: DestinationConfig):
        self.config = config

    def _headers(self, *, with_body: bool = False) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.config.token}",
            "User-Agent": "mdimg2hub",
        }
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _repository_url(self) -> str:
        owner = parse.quote(self.config.owner, safe="")
        repo = parse.quote(self.config.repo, safe="")
        return f"{self.config.api_url.rstrip('/')}/repos/{owner}/{repo}"

    def contents_url(self, remote_path: str) -> str:
        return f"{self._repository_url()}/contents/{parse.quote(remote_path, safe='/')}"

    def get_repository(self) -> GitHubResponse:
        return _send_json(
            "GET",
            self._repository_url(),
            None,
            self._headers(),
            self.config.timeout_seconds,
        )

    def put_content(self, remote_path: str, content: bytes, message: str) -> GitHubResponse:
        payload = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.config.branch,
        }
        return _send_json(
            "PUT",
            self.contents_url(remote_path),
            payload,
            self._headers(with_body=True),
            self.config.timeout_seconds,
        )
