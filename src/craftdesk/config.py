"""
Client configuration and the config/credential collaborator.

ClientConfig holds transport tuning. CraftDeskConfigManager is the default
ConfigProvider: it reads craftdesk.json from the project directory and looks
up bearer tokens from an explicit mapping or the environment.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from craftdesk.contracts import CraftDeskJson
from craftdesk.errors import GIT_DEPENDENCY_NOTE, NoRegistryConfiguredError

logger = logging.getLogger(__name__)

CRAFTDESK_JSON = "craftdesk.json"


class ConfigError(Exception):
    """Raised when craftdesk.json exists but cannot be read or validated."""


def _env_float(name: str) -> float | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class ClientConfig:
    """Registry client transport configuration."""

    request_timeout_s: float = 30.0
    # None: no limit on streaming downloads
    download_timeout_s: float | None = None
    max_redirects: int = 5
    chunk_size: int = 64 * 1024
    # Max chunks buffered between network reader and disk writer
    buffer_chunks: int = 8
    # Pooled sessions older than this are closed and rebuilt
    session_ttl_s: float = 300.0

    def __post_init__(self) -> None:
        if self.request_timeout_s <= 0:
            raise ValueError(f"request_timeout_s must be > 0, got {self.request_timeout_s}")
        if self.download_timeout_s is not None and self.download_timeout_s <= 0:
            raise ValueError(f"download_timeout_s must be > 0, got {self.download_timeout_s}")
        if self.max_redirects < 0:
            raise ValueError(f"max_redirects must be >= 0, got {self.max_redirects}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.buffer_chunks < 1:
            raise ValueError(f"buffer_chunks must be >= 1, got {self.buffer_chunks}")
        if self.session_ttl_s <= 0:
            raise ValueError(f"session_ttl_s must be > 0, got {self.session_ttl_s}")

    @classmethod
    def from_env(cls) -> ClientConfig:
        """Build from CRAFTDESK_* environment variables, defaulting the rest."""
        config = cls()
        request_timeout = _env_float("CRAFTDESK_REQUEST_TIMEOUT_S")
        download_timeout = _env_float("CRAFTDESK_DOWNLOAD_TIMEOUT_S")
        session_ttl = _env_float("CRAFTDESK_SESSION_TTL_S")
        return cls(
            request_timeout_s=(
                config.request_timeout_s if request_timeout is None else request_timeout
            ),
            download_timeout_s=download_timeout,
            max_redirects=config.max_redirects,
            chunk_size=config.chunk_size,
            buffer_chunks=config.buffer_chunks,
            session_ttl_s=config.session_ttl_s if session_ttl is None else session_ttl,
        )


class ConfigProvider(Protocol):
    """Config/credential collaborator consumed by the registry client."""

    async def get_auth_token(self, registry_url: str) -> str | None: ...

    async def get_registry_for_craft(self, craft_name: str) -> str: ...

    async def get_craftdesk_json(self) -> CraftDeskJson | None: ...


class CraftDeskConfigManager:
    """
    ConfigProvider backed by craftdesk.json and the environment.

    craftdesk.json is re-read on every call so edits are picked up without
    restarting.
    """

    def __init__(
        self,
        project_dir: Path | str | None = None,
        auth_tokens: dict[str, str] | None = None,
    ) -> None:
        """
        Args:
            project_dir: Directory holding craftdesk.json (default: cwd).
            auth_tokens: Registry URL -> bearer token.
        """
        self._project_dir = Path(project_dir) if project_dir is not None else Path.cwd()
        self._auth_tokens = {
            url.rstrip("/"): token for url, token in (auth_tokens or {}).items()
        }

    @property
    def craftdesk_json_path(self) -> Path:
        return self._project_dir / CRAFTDESK_JSON

    async def get_craftdesk_json(self) -> CraftDeskJson | None:
        """Load craftdesk.json, or None if the project has none.

        Raises:
            ConfigError: If the file exists but is unreadable or invalid.
        """
        path = self.craftdesk_json_path
        try:
            raw = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            logger.debug("No craftdesk.json found", extra={"project_dir": str(self._project_dir)})
            return None
        except OSError as e:
            raise ConfigError(f"Cannot read {CRAFTDESK_JSON} at {path}: {e}") from e
        try:
            return CraftDeskJson.from_json(raw)
        except (ValueError, ValidationError) as e:
            # orjson.JSONDecodeError is a ValueError
            raise ConfigError(f"Invalid {CRAFTDESK_JSON} at {path}: {e}") from e

    async def get_auth_token(self, registry_url: str) -> str | None:
        """Bearer token for a registry, or None for anonymous access."""
        token = self._auth_tokens.get(registry_url.rstrip("/"))
        if token:
            return token
        return os.environ.get("CRAFTDESK_AUTH_TOKEN") or None

    async def get_registry_for_craft(self, craft_name: str) -> str:
        """Registry reference serving a craft.

        Order: registry whose `scope` matches the craft author, then the
        `default` registry, then CRAFTDESK_REGISTRY.

        Raises:
            NoRegistryConfiguredError: If none of these is set.
        """
        author = craft_name.lstrip("@").split("/", 1)[0]
        craftdesk = await self.get_craftdesk_json()
        if craftdesk is not None:
            for entry in craftdesk.registries.values():
                if entry.scope and entry.scope.lstrip("@") == author:
                    return entry.url
            default_url = craftdesk.registry_url("default")
            if default_url:
                return default_url

        env_registry = os.environ.get("CRAFTDESK_REGISTRY", "").strip()
        if env_registry:
            return env_registry

        raise NoRegistryConfiguredError("use registry-based crafts", GIT_DEPENDENCY_NOTE)
