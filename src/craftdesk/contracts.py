"""
Wire contracts for the CraftDesk registry API and craftdesk.json.

Registry responses are validated into frozen pydantic models. Unknown
fields sent by the registry are ignored so newer servers stay compatible.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field


class CraftType(str, Enum):
    """Kind of distributable craft."""

    SKILL = "skill"
    AGENT = "agent"
    COMMAND = "command"
    HOOK = "hook"
    PLUGIN = "plugin"


class CraftInfo(BaseModel):
    """
    Registry metadata for one craft version.

    Attributes:
        name: Craft name.
        author: Craft author / namespace.
        version: Concrete version string.
        type: Craft type.
        description: Short description.
        dependencies: Craft name -> version range.
        download_url: Archive URL.
        integrity: Declared SHA-256 of the archive.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., min_length=1, description="Craft name")
    author: str = Field(..., min_length=1, description="Craft author")
    version: str = Field(..., min_length=1, description="Craft version")
    type: CraftType = Field(..., description="Craft type")
    description: str | None = Field(default=None, description="Short description")
    dependencies: dict[str, str] | None = Field(
        default=None, description="Dependency name -> version range"
    )
    download_url: str | None = Field(default=None, description="Archive download URL")
    integrity: str | None = Field(default=None, description="SHA-256 of the archive")

    @property
    def full_name(self) -> str:
        """Return `author/name`."""
        return f"{self.author}/{self.name}"

    @classmethod
    def from_response(cls, data: Any) -> CraftInfo:
        """Build from a craft-info response body.

        Accepts both `{"craft": {...}}` and a bare record.
        """
        if isinstance(data, dict) and isinstance(data.get("craft"), dict):
            data = data["craft"]
        return cls.model_validate(data)


class ResolveResponse(BaseModel):
    """
    Dependency resolution result.

    Attributes:
        resolved: Craft name -> resolved craft record (passed through as-is).
        lockfile: Lockfile structure, opaque to the client.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    resolved: dict[str, dict[str, Any]] = Field(default_factory=dict)
    lockfile: Any = None


class RegistryEntry(BaseModel):
    """One entry of the craftdesk.json `registries` table."""

    model_config = ConfigDict(frozen=True, extra="allow")

    url: str = Field(..., min_length=1, description="Registry base URL")
    scope: str | None = Field(default=None, description="Author scope served by this registry")


class CraftDeskJson(BaseModel):
    """
    Project manifest (craftdesk.json).

    Only the `registries` table is interpreted here; other keys are kept
    but not validated.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str | None = None
    version: str | None = None
    registries: dict[str, RegistryEntry] = Field(default_factory=dict)

    def registry_url(self, alias: str) -> str | None:
        """Return the URL configured for an alias, if any."""
        entry = self.registries.get(alias)
        return entry.url if entry else None

    @classmethod
    def from_json(cls, data: bytes | str) -> CraftDeskJson:
        """Deserialize from JSON."""
        if isinstance(data, str):
            data = data.encode()
        return cls.model_validate(orjson.loads(data))
