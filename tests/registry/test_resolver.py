"""Tests for registry reference resolution."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from craftdesk.config import CraftDeskConfigManager
from craftdesk.errors import REMEDIATION_SNIPPET, NoRegistryConfiguredError
from craftdesk.registry.resolver import RegistryResolver

if TYPE_CHECKING:
    from pathlib import Path


def _write_craftdesk(project_dir: Path, registries: dict[str, dict[str, str]]) -> None:
    (project_dir / "craftdesk.json").write_text(
        json.dumps({"name": "my-project", "registries": registries})
    )


@pytest.fixture
def resolver(tmp_path: Path) -> RegistryResolver:
    """Resolver over a project with `default` and `company` aliases."""
    _write_craftdesk(
        tmp_path,
        {
            "default": {"url": "https://registry.example.com"},
            "company": {"url": "https://crafts.company.internal"},
            "registry.example.org": {"url": "https://mirror.example.org"},
        },
    )
    return RegistryResolver(CraftDeskConfigManager(project_dir=tmp_path))


class TestResolve:
    """Tests for RegistryResolver.resolve."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reference",
        [
            "https://registry.example.com",
            "http://localhost:8080",
            "https://company",
            "https://registry.example.com/api/",
        ],
    )
    async def test_urls_unchanged(self, resolver: RegistryResolver, reference: str) -> None:
        """http(s) references are returned as-is, even if they look like aliases."""
        assert await resolver.resolve(reference) == reference

    @pytest.mark.asyncio
    async def test_alias_lookup(self, resolver: RegistryResolver) -> None:
        assert await resolver.resolve("company") == "https://crafts.company.internal"

    @pytest.mark.asyncio
    async def test_alias_wins_over_hostname_guess(self, resolver: RegistryResolver) -> None:
        """An alias that looks like a host still resolves to its configured URL."""
        assert await resolver.resolve("registry.example.org") == "https://mirror.example.org"

    @pytest.mark.asyncio
    async def test_bare_host_gets_https(self, resolver: RegistryResolver) -> None:
        assert await resolver.resolve("crafts.dev") == "https://crafts.dev"

    @pytest.mark.asyncio
    async def test_no_craftdesk_json(self, tmp_path: Path) -> None:
        """Without craftdesk.json, non-URL references fall back to https://."""
        resolver = RegistryResolver(CraftDeskConfigManager(project_dir=tmp_path))

        assert await resolver.resolve("company") == "https://company"


class TestResolveDefault:
    """Tests for RegistryResolver.resolve_default."""

    @pytest.mark.asyncio
    async def test_returns_default_url(self, resolver: RegistryResolver) -> None:
        assert await resolver.resolve_default("search for crafts") == "https://registry.example.com"

    @pytest.mark.asyncio
    async def test_missing_default_raises_with_remediation(self, tmp_path: Path) -> None:
        _write_craftdesk(tmp_path, {"company": {"url": "https://crafts.company.internal"}})
        resolver = RegistryResolver(CraftDeskConfigManager(project_dir=tmp_path))

        with pytest.raises(NoRegistryConfiguredError) as exc_info:
            await resolver.resolve_default("use registry-based crafts")

        message = str(exc_info.value)
        assert message.startswith("No registry configured. To use registry-based crafts")
        assert REMEDIATION_SNIPPET in message
        assert "Git-based dependencies" in message

    @pytest.mark.asyncio
    async def test_no_craftdesk_json_raises(self, tmp_path: Path) -> None:
        resolver = RegistryResolver(CraftDeskConfigManager(project_dir=tmp_path))

        with pytest.raises(NoRegistryConfiguredError):
            await resolver.resolve_default("search for crafts")
