"""
Async client for the CraftDesk registry API.

Endpoints:
- GET  /api/v1/crafts/{author}/{name}
- GET  /api/v1/crafts/{author}/{name}/versions/{version}
- GET  /api/v1/crafts/{author}/{name}/versions
- POST /api/v1/resolve
- GET  /api/v1/crafts?q={query}&type={type}

Lookups (craft info, versions, search) degrade to None / [] on remote
failures so callers can fall back to Git-based dependencies. Malformed craft
names and a missing default registry are always raised.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiohttp
import orjson
from pydantic import ValidationError

from craftdesk.config import ClientConfig, CraftDeskConfigManager
from craftdesk.contracts import CraftInfo, CraftType, ResolveResponse
from craftdesk.errors import (
    GIT_SEARCH_NOTE,
    DownloadFailedError,
    RegistryNotFoundError,
    RegistryRequestError,
)
from craftdesk.registry.checksum import compute_checksum_async, verify_artifact
from craftdesk.registry.download import stream_to_file
from craftdesk.registry.metrics import RegistryMetrics
from craftdesk.registry.names import parse_craft_name
from craftdesk.registry.resolver import RegistryResolver
from craftdesk.registry.result import LookupResult, LookupStatus
from craftdesk.registry.session_pool import SessionPool

if TYPE_CHECKING:
    from types import TracebackType

    from craftdesk.config import ConfigProvider

logger = logging.getLogger(__name__)


class RegistryClient:
    """
    Registry API client.

    Holds no per-call state: every operation resolves its own registry and
    fetches a fresh bearer token. Connections are reused through a session
    pool keyed by registry base URL.
    """

    def __init__(
        self,
        config_provider: ConfigProvider | None = None,
        client_config: ClientConfig | None = None,
        metrics: RegistryMetrics | None = None,
    ) -> None:
        """
        Initialize the registry client.

        Args:
            config_provider: Source of craftdesk.json and auth tokens
                (default: CraftDeskConfigManager for the current directory).
            client_config: Transport configuration.
            metrics: Prometheus metrics sink.
        """
        self._config_provider = config_provider or CraftDeskConfigManager()
        self._client_config = client_config or ClientConfig()
        self._metrics = metrics or RegistryMetrics()
        self._resolver = RegistryResolver(self._config_provider)
        self._pool = SessionPool(
            timeout_s=self._client_config.request_timeout_s,
            ttl_s=self._client_config.session_ttl_s,
        )

    @property
    def resolver(self) -> RegistryResolver:
        return self._resolver

    async def close(self) -> None:
        """Close pooled HTTP sessions."""
        await self._pool.close()

    async def __aenter__(self) -> RegistryClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _headers(self, registry_url: str) -> dict[str, str]:
        token = await self._config_provider.get_auth_token(registry_url)
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        registry_url: str,
        method: str,
        endpoint: str,
        *,
        params: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make a JSON request against a registry.

        Args:
            registry_url: Resolved registry base URL.
            method: HTTP method.
            endpoint: API path starting with "/".
            params: Query parameters.
            payload: JSON body.

        Returns:
            Decoded JSON response.

        Raises:
            RegistryNotFoundError: On HTTP 404.
            RegistryRequestError: On any other HTTP error, network error,
                timeout or undecodable body.
        """
        url = f"{registry_url.rstrip('/')}{endpoint}"
        headers = await self._headers(registry_url)
        logger.debug("Registry request", extra={"method": method, "url": url})

        try:
            async with (
                self._pool.lease(registry_url) as session,
                session.request(
                    method, url, params=params, json=payload, headers=headers
                ) as response,
            ):
                if response.status == 404:
                    raise RegistryNotFoundError(f"{method} {endpoint} returned 404")
                if response.status >= 400:
                    text = await response.text()
                    raise RegistryRequestError(
                        f"HTTP {response.status}: {text[:200]}",
                        status=response.status,
                    )
                return await response.json(loads=orjson.loads, content_type=None)
        except (aiohttp.ClientError, TimeoutError) as e:
            raise RegistryRequestError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            # orjson.JSONDecodeError
            raise RegistryRequestError(f"Malformed response body: {e}") from e

    async def _registry_for_craft(self, craft_name: str, registry_override: str | None) -> str:
        # Dependency-specific registry wins over per-craft configuration
        reference = registry_override or await self._config_provider.get_registry_for_craft(
            craft_name
        )
        return await self._resolver.resolve(reference)

    async def fetch_craft_info(
        self,
        craft_name: str,
        version: str | None = None,
        registry_override: str | None = None,
    ) -> LookupResult[CraftInfo]:
        """
        Fetch craft metadata, keeping the reason for a miss.

        Args:
            craft_name: `author/name` or `@author/name`.
            version: Specific version; latest when None.
            registry_override: Registry URL, alias or host for this dependency.

        Returns:
            LookupResult with the CraftInfo, or NOT_FOUND / REQUEST_FAILED.

        Raises:
            InvalidNameFormatError: If craft_name is malformed.
            NoRegistryConfiguredError: If no registry serves this craft.
        """
        registry_url = await self._registry_for_craft(craft_name, registry_override)
        craft = parse_craft_name(craft_name)

        endpoint = f"/api/v1/crafts/{craft.author}/{craft.name}"
        if version:
            endpoint = f"{endpoint}/versions/{version}"

        try:
            data = await self._request(registry_url, "GET", endpoint)
            info = CraftInfo.from_response(data)
        except RegistryNotFoundError:
            logger.error(
                "Craft not found in registry",
                extra={"craft": craft_name, "version": version},
            )
            self._metrics.record_request("get_craft_info", LookupStatus.NOT_FOUND.value)
            return LookupResult.missing(f"Craft '{craft_name}' not found in registry")
        except (RegistryRequestError, ValidationError) as e:
            logger.error(
                "Failed to fetch craft info",
                extra={"craft": craft_name, "error": str(e)},
            )
            self._metrics.record_request("get_craft_info", LookupStatus.REQUEST_FAILED.value)
            return LookupResult.failed(f"Failed to fetch craft info: {e}")

        self._metrics.record_request("get_craft_info", LookupStatus.OK.value)
        return LookupResult.success(info)

    async def get_craft_info(
        self,
        craft_name: str,
        version: str | None = None,
        registry_override: str | None = None,
    ) -> CraftInfo | None:
        """Fetch craft metadata; None when not found or the request failed."""
        result = await self.fetch_craft_info(craft_name, version, registry_override)
        return result.value

    async def fetch_versions(self, craft_name: str) -> LookupResult[list[str]]:
        """
        List published versions of a craft, keeping the reason for a miss.

        Raises:
            InvalidNameFormatError: If craft_name is malformed.
            NoRegistryConfiguredError: If no registry serves this craft.
        """
        registry_url = await self._registry_for_craft(craft_name, None)
        craft = parse_craft_name(craft_name)

        try:
            data = await self._request(
                registry_url, "GET", f"/api/v1/crafts/{craft.author}/{craft.name}/versions"
            )
        except RegistryRequestError as e:
            logger.error("Failed to fetch versions", extra={"craft": craft_name, "error": str(e)})
            outcome = (
                LookupStatus.NOT_FOUND
                if isinstance(e, RegistryNotFoundError)
                else LookupStatus.REQUEST_FAILED
            )
            self._metrics.record_request("list_versions", outcome.value)
            return LookupResult(status=outcome, error=f"Failed to fetch versions: {e}")

        versions = data.get("versions", []) if isinstance(data, dict) else None
        if not isinstance(versions, list) or not all(isinstance(v, str) for v in versions):
            logger.error(
                "Malformed versions response",
                extra={"craft": craft_name, "versions_type": type(versions).__name__},
            )
            self._metrics.record_request("list_versions", LookupStatus.REQUEST_FAILED.value)
            return LookupResult.failed("Failed to fetch versions: malformed response body")

        self._metrics.record_request("list_versions", LookupStatus.OK.value)
        return LookupResult.success(versions)

    async def list_versions(self, craft_name: str) -> list[str]:
        """List published versions of a craft; [] on any remote failure."""
        result = await self.fetch_versions(craft_name)
        return result.value or []

    async def fetch_resolution(
        self, dependencies: dict[str, str]
    ) -> LookupResult[ResolveResponse]:
        """
        Resolve a dependency set against the default registry.

        Args:
            dependencies: Craft name -> version range.

        Returns:
            LookupResult with the ResolveResponse.

        Raises:
            NoRegistryConfiguredError: If no `default` registry is configured.
        """
        registry_url = await self._resolver.resolve_default("use registry-based crafts")

        try:
            logger.debug("Resolving dependencies via API", extra={"count": len(dependencies)})
            data = await self._request(
                registry_url,
                "POST",
                "/api/v1/resolve",
                payload={"dependencies": dependencies},
            )
            resolution = ResolveResponse.model_validate(data)
        except (RegistryRequestError, ValidationError) as e:
            logger.error("Failed to resolve dependencies", extra={"error": str(e)})
            outcome = (
                LookupStatus.NOT_FOUND
                if isinstance(e, RegistryNotFoundError)
                else LookupStatus.REQUEST_FAILED
            )
            self._metrics.record_request("resolve_dependencies", outcome.value)
            return LookupResult(status=outcome, error=f"Failed to resolve dependencies: {e}")

        self._metrics.record_request("resolve_dependencies", LookupStatus.OK.value)
        return LookupResult.success(resolution)

    async def resolve_dependencies(
        self, dependencies: dict[str, str]
    ) -> ResolveResponse | None:
        """Resolve a dependency set; None when the request failed."""
        result = await self.fetch_resolution(dependencies)
        return result.value

    async def search_crafts(
        self,
        query: str,
        craft_type: CraftType | str | None = None,
    ) -> list[CraftInfo]:
        """
        Search the default registry.

        Entries that do not validate as CraftInfo are skipped.

        Args:
            query: Free-text query.
            craft_type: Optional type filter.

        Returns:
            Matching crafts; [] on request failure.

        Raises:
            NoRegistryConfiguredError: If no `default` registry is configured.
        """
        registry_url = await self._resolver.resolve_default("search for crafts", GIT_SEARCH_NOTE)

        params = {"q": query}
        if craft_type:
            params["type"] = craft_type.value if isinstance(craft_type, CraftType) else craft_type

        try:
            data = await self._request(registry_url, "GET", "/api/v1/crafts", params=params)
        except RegistryRequestError as e:
            logger.error("Failed to search crafts", extra={"error": str(e)})
            self._metrics.record_request("search_crafts", LookupStatus.REQUEST_FAILED.value)
            return []

        raw_crafts = data.get("crafts", []) if isinstance(data, dict) else None
        if not isinstance(raw_crafts, list):
            logger.error(
                "Malformed search response",
                extra={"crafts_type": type(raw_crafts).__name__},
            )
            self._metrics.record_request("search_crafts", LookupStatus.REQUEST_FAILED.value)
            return []

        crafts: list[CraftInfo] = []
        for raw in raw_crafts:
            try:
                crafts.append(CraftInfo.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    "Skipping invalid search result",
                    extra={"error": str(e).splitlines()[0]},
                )

        self._metrics.record_request("search_crafts", LookupStatus.OK.value)
        logger.debug("Search completed", extra={"count": len(crafts)})
        return crafts

    async def download_craft(self, download_url: str, output_path: Path | str) -> None:
        """
        Stream a craft archive to disk.

        The parent directory is created first. Returns once the file is
        flushed and closed. On failure a partial file may remain at
        output_path; cleaning it up is the caller's responsibility.

        Args:
            download_url: Archive URL (redirects followed up to max_redirects).
            output_path: Destination file.

        Raises:
            DownloadFailedError: On HTTP error, network error, timeout or
                local write failure (original error chained).
        """
        output_path = Path(output_path)
        timeout = aiohttp.ClientTimeout(total=self._client_config.download_timeout_s)
        max_redirects = self._client_config.max_redirects

        try:
            await asyncio.to_thread(output_path.parent.mkdir, parents=True, exist_ok=True)
            async with (
                aiohttp.ClientSession(timeout=timeout) as session,
                session.get(
                    download_url,
                    allow_redirects=max_redirects > 0,
                    # aiohttp gives up as soon as the redirect count reaches its limit
                    max_redirects=max_redirects + 1,
                ) as response,
            ):
                # 3xx only reaches here when redirects are disabled
                if response.status >= 300:
                    raise DownloadFailedError(
                        f"Failed to download craft: HTTP {response.status}"
                    )
                written = await stream_to_file(
                    response.content.iter_chunked(self._client_config.chunk_size),
                    output_path,
                    buffer_chunks=self._client_config.buffer_chunks,
                )
        except DownloadFailedError as e:
            logger.error("Failed to download craft", extra={"error": str(e)})
            self._metrics.record_download("failed")
            raise
        except (aiohttp.ClientError, OSError) as e:
            # TimeoutError is an OSError
            logger.error(
                "Failed to download craft",
                extra={"error": f"{type(e).__name__}: {e}", "url": download_url},
            )
            self._metrics.record_download("failed")
            raise DownloadFailedError(f"Failed to download craft: {e}") from e

        self._metrics.record_download("ok", written)
        logger.debug(
            "Downloaded craft archive",
            extra={"output_path": str(output_path), "size_bytes": written},
        )

    async def download_and_verify(self, info: CraftInfo, output_path: Path | str) -> str:
        """
        Download a craft archive and check it against the declared digest.

        When the registry declares no integrity digest the archive is kept
        unverified (a warning is logged) and its checksum is returned.

        Returns:
            SHA-256 of the downloaded archive.

        Raises:
            DownloadFailedError: If info has no download_url or the download fails.
            IntegrityError: If the archive does not match info.integrity.
        """
        if not info.download_url:
            raise DownloadFailedError(
                f"No download URL for {info.full_name}@{info.version}"
            )

        await self.download_craft(info.download_url, output_path)

        if not info.integrity:
            logger.warning(
                "No integrity digest declared, archive not verified",
                extra={"craft": info.full_name, "version": info.version},
            )
            return await compute_checksum_async(output_path)

        return await asyncio.to_thread(verify_artifact, Path(output_path), info.integrity)
