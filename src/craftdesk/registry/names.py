"""Craft name parsing.

Registry crafts are always namespaced by author:

    john/rails-api
    @john/rails-api

There is no default-author fallback; a bare name is rejected.
"""

from __future__ import annotations

from dataclasses import dataclass

from craftdesk.errors import InvalidNameFormatError


@dataclass(frozen=True)
class CraftIdentifier:
    """Validated (author, name) pair.

    Attributes:
        author: Craft author / namespace (without leading "@").
        name: Craft name within the author's namespace.
    """

    author: str
    name: str

    def __str__(self) -> str:
        return f"{self.author}/{self.name}"


def _split_pair(text: str) -> tuple[str, str] | None:
    parts = text.split("/")
    if len(parts) == 2 and parts[0] and parts[1]:
        return parts[0], parts[1]
    return None


def parse_craft_name(craft_name: str) -> CraftIdentifier:
    """Parse `author/name` or `@author/name` into a CraftIdentifier.

    Args:
        craft_name: Craft name as written in a dependency list.

    Returns:
        CraftIdentifier with author and name.

    Raises:
        InvalidNameFormatError: If the name is not exactly two non-empty
            slash-separated segments (optionally prefixed with "@").
    """
    candidate = craft_name[1:] if craft_name.startswith("@") else craft_name
    pair = _split_pair(candidate)
    if pair is None:
        raise InvalidNameFormatError(craft_name)
    return CraftIdentifier(author=pair[0], name=pair[1])
