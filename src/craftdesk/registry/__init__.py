"""Craft registry access and artifact integrity.

- Craft name parsing (author/name, @author/name)
- Registry reference resolution (URL, alias, bare host)
- Async registry API client with streaming downloads
- SHA-256 checksum verification
"""

from craftdesk.registry.checksum import (
    compute_checksum,
    compute_checksum_async,
    format_checksum,
    is_valid_checksum,
    verify_artifact,
    verify_checksum,
)
from craftdesk.registry.client import RegistryClient
from craftdesk.registry.download import stream_to_file
from craftdesk.registry.metrics import RegistryMetrics
from craftdesk.registry.names import CraftIdentifier, parse_craft_name
from craftdesk.registry.resolver import RegistryResolver
from craftdesk.registry.result import LookupResult, LookupStatus
from craftdesk.registry.session_pool import SessionPool

__all__ = [
    "CraftIdentifier",
    "LookupResult",
    "LookupStatus",
    "RegistryClient",
    "RegistryMetrics",
    "RegistryResolver",
    "SessionPool",
    "compute_checksum",
    "compute_checksum_async",
    "format_checksum",
    "is_valid_checksum",
    "parse_craft_name",
    "stream_to_file",
    "verify_artifact",
    "verify_checksum",
]
