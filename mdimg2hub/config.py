from __future__ import annotations

import os
from dataclasses import asdict, dataclass, replace

DEFAULT_BRANCH = "main"
DEFAULT_IMAGES_PATH = "images"
DEFAULT_CDN_HOST = "cdn.jsdelivr.net"
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS = 20.0

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class DestinationConfig:
    """Where relocated images go. Immutable for the lifetime of one run."""

    token: str
    owner: str
    repo: str
    branch: str = DEFAULT_BRANCH
    images_path: str = DEFAULT_IMAGES_PATH
    use_cdn: bool = True
    cdn_host: str = DEFAULT_CDN_HOST
    api_url: str = DEFAULT_API_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def repository_slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def remote_directory(self) -> str:
        return self.images_path.strip().strip("/")

    def validate(self) -> None:
        missing = [
            name
            for name, value in (("token", self.token), ("owner", self.owner), ("repo", self.repo))
            if not (value or "").strip()
        ]
        if missing:
            raise ValueError(f"Destination configuration is missing: {', '.join(missing)}.")
        if not self.branch.strip():
            raise ValueError("Destination branch must not be empty.")
        if self.timeout_seconds <= 0:
            raise ValueError("HTTP timeout must be greater than zero.")

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["token"] = "***" if self.token else ""
        return payload


def _parse_bool(raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    cleaned = raw.strip().lower()
    if cleaned in _TRUE_VALUES:
        return True
    if cleaned in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value '{raw}'.")


def _parse_timeout(raw: str | None) -> float:
    if raw is None or not raw.strip():
        return DEFAULT_TIMEOUT_SECONDS
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid HTTP timeout '{raw}'.") from exc


def load_destination_config(**overrides) -> DestinationConfig:
    """Build the destination from `MDIMG2HUB_*` variables; non-None overrides win."""
    config = DestinationConfig(
        token=os.getenv("MDIMG2HUB_GITHUB_TOKEN", ""),
        owner=os.getenv("MDIMG2HUB_GITHUB_OWNER", ""),
        repo=os.getenv("MDIMG2HUB_GITHUB_REPO", ""),
        branch=os.getenv("MDIMG2HUB_GITHUB_BRANCH", DEFAULT_BRANCH),
        images_path=os.getenv("MDIMG2HUB_IMAGES_PATH", DEFAULT_IMAGES_PATH),
        use_cdn=_parse_bool(os.getenv("MDIMG2HUB_USE_CDN"), True),
        cdn_host=os.getenv("MDIMG2HUB_CDN_HOST", DEFAULT_CDN_HOST),
        api_url=os.getenv("MDIMG2HUB_GITHUB_API_URL", DEFAULT_API_URL),
        timeout_seconds=_parse_timeout(os.getenv("MDIMG2HUB_HTTP_TIMEOUT")),
    )

    selected = {key: value for key, value in overrides.items() if value is not None}
    if selected:
        config = replace(config, **selected)
    return config
