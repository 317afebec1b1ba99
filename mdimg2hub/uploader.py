from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from mdimg2hub.config import DestinationConfig
from mdimg2hub.github_client import GitHubContentsClient, GitHubTransportError

logger = logging.getLogger(__name__)

DIRECTORY_SENTINEL = ".gitkeep"
DIRECTORY_COMMIT_MESSAGE = "Create images directory"
HTTP_OK = 200
HTTP_CREATED = 201
HTTP_NOT_FOUND = 404
HTTP_UNPROCESSABLE = 422


class DestinationError(RuntimeError):
    """The destination repository is missing or unusable; the run must stop."""


class AssetReadError(RuntimeError):
    """A local asset could not be read; only its reference is skipped."""


class UploadError(RuntimeError):
    """The host rejected one asset; only its reference is skipped."""


class _UploadedContentModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    download_url: str | None = None


class ContentUploadResponseModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    content: _UploadedContentModel


@dataclass(frozen=True)
class UploadTarget:
    local_path: Path
    remote_name: str
    remote_directory: str

    @property
    def remote_path(self) -> str:
        return _join_remote(self.remote_directory, self.remote_name)


@dataclass(frozen=True)
class UploadResult:
    public_url: str
    remote_path: str


def build_remote_name(local_path: Path, timestamp_ns: int) -> str:
    return f"{timestamp_ns}{Path(local_path).suffix}"


def build_cdn_url(config: DestinationConfig, remote_path: str) -> str:
    return f"https://{config.cdn_host}/gh/{config.owner}/{config.repo}@{config.branch}/{remote_path}"


def _join_remote(directory: str, name: str) -> str:
    return f"{directory}/{name}" if directory else name


class AssetUploader:
    """Uploads local assets into one destination repository.

    One instance serves one run. The images directory is bootstrapped at most
    once per instance, on the first upload that gets past the repository
    check.
    """

    def __init__(
        self,
        config: DestinationConfig,
        client: GitHubContentsClient | None = None,
        clock=time.time_ns,
    ):
        self.config = config
        self.client = client or GitHubContentsClient(config)
        self._clock = clock
        self._directory_checked = False
        self._directory_lock = threading.Lock()
        self._stamp_lock = threading.Lock()
        self._last_stamp = 0

    @property
    def directory_checked(self) -> bool:
        return self._directory_checked

    def _next_stamp(self) -> int:
        # Coarse clocks can repeat a value; names must still be unique.
        with self._stamp_lock:
            stamp = max(int(self._clock()), self._last_stamp + 1)
            self._last_stamp = stamp
            return stamp

    def plan(self, local_path: Path) -> UploadTarget:
        return UploadTarget(
            local_path=Path(local_path),
            remote_name=build_remote_name(local_path, self._next_stamp()),
            remote_directory=self.config.remote_directory,
        )

    def verify_destination(self) -> None:
        slug = self.config.repository_slug
        try:
            response = self.client.get_repository()
        except GitHubTransportError as exc:
            raise DestinationError(f"Error checking repository {slug}: {exc}") from exc

        if response.status == HTTP_NOT_FOUND:
            raise DestinationError(
                f"Repository {slug} not found - please check if it exists "
                "and is accessible with your token."
            )
        if response.status != HTTP_OK:
            raise DestinationError(f"Error accessing repository {slug}: {response.describe()}")

    def _bootstrap_directory(self) -> None:
        sentinel_path = _join_remote(self.config.remote_directory, DIRECTORY_SENTINEL)
        try:
            response = self.client.put_content(sentinel_path, b"", DIRECTORY_COMMIT_MESSAGE)
        except GitHubTransportError as exc:
            logger.warning("Could not ensure images directory exists: %s", exc)
            return

        if response.status not in {HTTP_CREATED, HTTP_UNPROCESSABLE}:
            logger.warning("Could not ensure images directory exists: %s", response.describe())
            return
        logger.debug("Images directory ready at %s (HTTP %s).", sentinel_path, response.status)

    def ensure_directory(self) -> None:
        with self._directory_lock:
            if self._directory_checked:
                return
            self._bootstrap_directory()
            self._directory_checked = True

    def _public_url(self, target: UploadTarget, response_payload: dict) -> str:
        if self.config.use_cdn:
            return build_cdn_url(self.config, target.remote_path)

        try:
            parsed = ContentUploadResponseModel.model_validate(response_payload)
        except ValidationError as exc:
            raise UploadError(f"Unexpected upload response for {target.remote_path}.") from exc

        download_url = (parsed.content.download_url or "").strip()
        if not download_url:
            raise UploadError(f"Upload response for {target.remote_path} has no download URL.")
        return download_url

    def upload(self, local_path: Path) -> UploadResult:
        local_path = Path(local_path)
        try:
            content = local_path.read_bytes()
        except OSError as exc:
            raise AssetReadError(f"Error reading image file {local_path}: {exc}") from exc

        self.verify_destination()
        self.ensure_directory()

        target = self.plan(local_path)
        try:
            response = self.client.put_content(
                target.remote_path,
                content,
                f"Upload image {target.remote_name}",
            )
        except GitHubTransportError as exc:
            raise UploadError(f"Error uploading {local_path}: {exc}") from exc

        if response.status != HTTP_CREATED:
            raise UploadError(f"GitHub API error for {local_path}: {response.describe()}")

        return UploadResult(
            public_url=self._public_url(target, response.payload),
            remote_path=target.remote_path,
        )
