"""Registry reference resolution.

A reference is a full URL, an alias from the craftdesk.json `registries`
table, or a bare hostname. Resolution is re-derived on every call.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from craftdesk.errors import GIT_DEPENDENCY_NOTE, NoRegistryConfiguredError

if TYPE_CHECKING:
    from craftdesk.config import ConfigProvider

logger = logging.getLogger(__name__)

DEFAULT_ALIAS = "default"


def is_url(reference: str) -> bool:
    return reference.startswith(("http://", "https://"))


class RegistryResolver:
    """Turns registry references into base URLs using craftdesk.json."""

    def __init__(self, config: ConfigProvider) -> None:
        self._config = config

    async def resolve(self, reference: str) -> str:
        """Resolve a registry reference to a base URL. Never fails.

        Order:
        1. http:// or https:// references are returned unchanged.
        2. A matching alias returns its configured URL.
        3. Anything else is treated as a hostname and gets https:// prepended.
        """
        if is_url(reference):
            return reference

        craftdesk = await self._config.get_craftdesk_json()
        if craftdesk is not None:
            url = craftdesk.registry_url(reference)
            if url:
                logger.debug("Resolved registry alias", extra={"alias": reference})
                return url

        return f"https://{reference}"

    async def resolve_default(self, purpose: str, note: str = GIT_DEPENDENCY_NOTE) -> str:
        """Return the URL of the `default` registry.

        Args:
            purpose: What the caller is trying to do, used in the error message.
            note: Trailing hint for the error message.

        Raises:
            NoRegistryConfiguredError: If craftdesk.json has no `default` registry.
        """
        craftdesk = await self._config.get_craftdesk_json()
        url = craftdesk.registry_url(DEFAULT_ALIAS) if craftdesk is not None else None
        if not url:
            logger.error("No default registry configured", extra={"purpose": purpose})
            raise NoRegistryConfiguredError(purpose, note)
        return url
