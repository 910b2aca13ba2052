"""Configuration for the tasksync client.

Configuration is stored in ~/.tasksync/config.toml
Task data is stored in ~/.tasksync/tasks.db (SQLite)

The sync core never reads this module: the CLI loads a UnifiedConfig and
passes endpoint, batch size, retry ceiling and tie-break explicitly to
SyncOrchestrator.
"""

from __future__ import annotations

import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tasksync.sync.conflict_resolver import TieBreak

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:3000/api"

# http(s) URL without quotes, whitespace or control characters
_API_URL_PATTERN = re.compile(r"^https?://[^\s\"'\\]+$")


def get_tasksync_dir() -> Path:
    """Get tasksync data directory.

    Priority:
    1. TASKSYNC_DIR environment variable
    2. ~/.tasksync/
    """
    env_dir = os.environ.get("TASKSYNC_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".tasksync"


def _clamp_int(value: Any, default: int, low: int, high: int) -> int:
    try:
        return max(low, min(int(value), high))
    except (ValueError, TypeError):
        return default


def _clamp_float(value: Any, default: float, low: float, high: float) -> float:
    try:
        return max(low, min(float(value), high))
    except (ValueError, TypeError):
        return default


def _sanitize_api_url(value: Any) -> str:
    """Return a usable API URL or the default one."""
    if not isinstance(value, str):
        return DEFAULT_API_URL
    cleaned = value.strip().rstrip("/")
    if not _API_URL_PATTERN.match(cleaned):
        logger.warning("Ignoring invalid api_url %r", value)
        return DEFAULT_API_URL
    return cleaned


@dataclass(frozen=True)
class RemoteConfig:
    """Where the remote authority lives and how long to wait for it."""

    api_url: str = DEFAULT_API_URL
    request_timeout: float = 30.0
    health_timeout: float = 5.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "api_url": self.api_url,
            "request_timeout": self.request_timeout,
            "health_timeout": self.health_timeout,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteConfig:
        return cls(
            api_url=_sanitize_api_url(data.get("api_url", DEFAULT_API_URL)),
            request_timeout=_clamp_float(data.get("request_timeout"), 30.0, 1.0, 600.0),
            health_timeout=_clamp_float(data.get("health_timeout"), 5.0, 0.5, 60.0),
        )


@dataclass(frozen=True)
class SyncSettings:
    """Batching, retry and conflict settings."""

    batch_size: int = 10
    max_retries: int = 3
    tie_break: TieBreak = TieBreak.SERVER

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_size": self.batch_size,
            "max_retries": self.max_retries,
            "tie_break": self.tie_break.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncSettings:
        try:
            tie_break = TieBreak(data.get("tie_break", TieBreak.SERVER))
        except ValueError:
            tie_break = TieBreak.SERVER
        return cls(
            batch_size=_clamp_int(data.get("batch_size"), 10, 1, 500),
            max_retries=_clamp_int(data.get("max_retries"), 3, 1, 100),
            tie_break=tie_break,
        )


@dataclass
class UnifiedConfig:
    """Configuration for the tasksync client.

    Storage location: ~/.tasksync/config.toml
    """

    data_dir: Path = field(default_factory=get_tasksync_dir)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    sync: SyncSettings = field(default_factory=SyncSettings)
    version: str = "1.0"

    @classmethod
    def load(cls, config_path: Path | None = None) -> UnifiedConfig:
        """Load configuration from file, or create default if it doesn't exist.

        Environment overrides (not persisted): TASKSYNC_API_URL and
        TASKSYNC_BATCH_SIZE.
        """
        if config_path is None:
            data_dir = get_tasksync_dir()
            config_path = data_dir / "config.toml"
        else:
            data_dir = config_path.parent

        if config_path.exists():
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
            config = cls(
                data_dir=data_dir,
                remote=RemoteConfig.from_dict(data.get("remote", {})),
                sync=SyncSettings.from_dict(data.get("sync", {})),
                version=str(data.get("version", "1.0")),
            )
        else:
            config = cls(data_dir=data_dir)
            config.save()

        return config.with_env_overrides()

    def with_env_overrides(self) -> UnifiedConfig:
        """Apply TASKSYNC_API_URL / TASKSYNC_BATCH_SIZE on top of the file values."""
        remote_data = self.remote.to_dict()
        sync_data = self.sync.to_dict()
        api_url = os.environ.get("TASKSYNC_API_URL")
        if api_url:
            remote_data["api_url"] = api_url
        batch_size = os.environ.get("TASKSYNC_BATCH_SIZE")
        if batch_size:
            sync_data["batch_size"] = batch_size
        if not api_url and not batch_size:
            return self
        return UnifiedConfig(
            data_dir=self.data_dir,
            remote=RemoteConfig.from_dict(remote_data),
            sync=SyncSettings.from_dict(sync_data),
            version=self.version,
        )

    def save(self) -> None:
        """Save configuration to TOML file (atomic write via temp+rename)."""
        import tempfile

        self.data_dir.mkdir(parents=True, exist_ok=True)
        config_path = self.config_path

        api_url = _sanitize_api_url(self.remote.api_url)

        # Build TOML content manually (no toml write dependency)
        lines = [
            "# tasksync configuration",
            "",
            f'version = "{self.version}"',
            "",
            "# Remote authority",
            "[remote]",
            f'api_url = "{api_url}"',
            f"request_timeout = {self.remote.request_timeout}",
            f"health_timeout = {self.remote.health_timeout}",
            "",
            "# Batching, retries and conflict tie-break (server | local)",
            "[sync]",
            f"batch_size = {self.sync.batch_size}",
            f"max_retries = {self.sync.max_retries}",
            f'tie_break = "{self.sync.tie_break.value}"',
        ]

        content = "\n".join(lines) + "\n"
        fd, tmp_path = tempfile.mkstemp(dir=str(self.data_dir), suffix=".toml.tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            Path(tmp_path).replace(config_path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    @property
    def config_path(self) -> Path:
        """Get path to config file."""
        return self.data_dir / "config.toml"

    @property
    def db_path(self) -> Path:
        """Get path to the task database."""
        return self.data_dir / "tasks.db"

    def to_dict(self) -> dict[str, Any]:
        return {
            "data_dir": str(self.data_dir),
            "remote": self.remote.to_dict(),
            "sync": self.sync.to_dict(),
            "version": self.version,
        }

