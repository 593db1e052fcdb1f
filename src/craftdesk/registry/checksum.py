"""SHA-256 integrity checks for downloaded craft archives.

Digests are lowercase hex (64 chars). Comparison is case-insensitive.

Read errors propagate as OSError; they are never reported as a mismatch.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from pathlib import Path
from typing import BinaryIO

from craftdesk.errors import IntegrityError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
DISPLAY_LENGTH = 12

_CHECKSUM_PATTERN = re.compile(r"[0-9a-fA-F]{64}")


def _hash_stream(stream: BinaryIO) -> str:
    hasher = hashlib.sha256()
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        hasher.update(chunk)
    return hasher.hexdigest()


def compute_checksum(source: Path | str | BinaryIO) -> str:
    """Compute the SHA-256 of a file or binary stream.

    Content is read in CHUNK_SIZE pieces, so memory use does not depend on
    the artifact size.

    Args:
        source: Path to a file, or an open binary stream positioned at the
            start of the content.

    Returns:
        Hex-encoded SHA-256 (64 lowercase chars).

    Raises:
        OSError: If the file cannot be opened or read.
    """
    if isinstance(source, (str, Path)):
        with Path(source).open("rb") as f:
            return _hash_stream(f)
    return _hash_stream(source)


async def compute_checksum_async(path: Path | str) -> str:
    """Compute a file's SHA-256 in a worker thread."""
    return await asyncio.to_thread(compute_checksum, Path(path))


def verify_checksum(source: Path | str | BinaryIO, expected: str) -> bool:
    """Check content against an expected SHA-256 (case-insensitive)."""
    return compute_checksum(source).lower() == expected.lower()


def format_checksum(checksum: str) -> str:
    """Shorten a checksum for display. Never use the result for comparison."""
    return checksum[:DISPLAY_LENGTH]


def is_valid_checksum(value: str) -> bool:
    """Return True if value looks like a hex SHA-256 digest."""
    return bool(_CHECKSUM_PATTERN.fullmatch(value))


def verify_artifact(path: Path | str, expected: str) -> str:
    """Verify a downloaded artifact against its declared digest.

    Args:
        path: Artifact on disk.
        expected: Registry-declared SHA-256.

    Returns:
        The computed checksum (lowercase).

    Raises:
        IntegrityError: If the digests differ.
        OSError: If the file cannot be read.
    """
    actual = compute_checksum(path)
    if actual != expected.lower():
        logger.error(
            "Checksum mismatch",
            extra={
                "artifact": str(path),
                "expected": format_checksum(expected),
                "actual": format_checksum(actual),
            },
        )
        raise IntegrityError(str(path), expected, actual)
    logger.debug("Checksum verified", extra={"checksum": format_checksum(actual)})
    return actual
