"""Exception hierarchy for registry operations.

Lookup-style operations (craft info, versions, search) catch
RegistryRequestError and degrade to None / empty results. Everything else
here is raised to the caller.
"""

from __future__ import annotations

REMEDIATION_SNIPPET = (
    "{\n"
    '  "registries": {\n'
    '    "default": { "url": "https://your-registry.com" }\n'
    "  }\n"
    "}"
)

GIT_DEPENDENCY_NOTE = "Git-based dependencies (GitHub URLs) do not require a registry."
GIT_SEARCH_NOTE = (
    "You can still add Git-based dependencies without a registry using GitHub URLs."
)


class RegistryError(Exception):
    """Base exception for registry operations."""


class InvalidNameFormatError(RegistryError, ValueError):
    """Raised when a craft name is not `author/name` or `@author/name`."""

    def __init__(self, craft_name: str) -> None:
        self.craft_name = craft_name
        super().__init__(
            f'Invalid craft name format: "{craft_name}". '
            'Registry crafts must use "author/name" format with non-empty '
            'author and name (e.g., "john/rails-api")'
        )


class NoRegistryConfiguredError(RegistryError):
    """Raised when an operation needs the `default` registry and none is configured.

    The message embeds the craftdesk.json snippet that fixes the problem.
    """

    def __init__(self, purpose: str, note: str) -> None:
        self.purpose = purpose
        super().__init__(
            f"No registry configured. To {purpose}, add a registry to your craftdesk.json:\n"
            f"{REMEDIATION_SNIPPET}\n\n"
            f"Note: {note}"
        )


class RegistryRequestError(RegistryError):
    """Raised when a registry HTTP call fails (network, timeout, HTTP error, bad body).

    Attributes:
        status: HTTP status code, or None when no response was received.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RegistryNotFoundError(RegistryRequestError):
    """Raised when the registry answers 404."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=404)


class DownloadFailedError(RegistryError):
    """Raised when streaming a craft archive to disk fails.

    The underlying network or filesystem error is chained as __cause__.
    A partially written file may remain at the destination; removing it is
    the caller's responsibility.
    """


class IntegrityError(RegistryError):
    """Raised when an artifact's SHA-256 does not match the declared digest."""

    def __init__(self, path: str, expected: str, actual: str) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"SHA256 mismatch for {path}: expected {expected}, got {actual}"
        )
