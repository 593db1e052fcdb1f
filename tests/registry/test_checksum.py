"""Tests for checksum computation and verification."""

from __future__ import annotations

import hashlib
import io
from typing import TYPE_CHECKING

import pytest

from craftdesk.errors import IntegrityError
from craftdesk.registry.checksum import (
    CHUNK_SIZE,
    compute_checksum,
    compute_checksum_async,
    format_checksum,
    is_valid_checksum,
    verify_artifact,
    verify_checksum,
)

if TYPE_CHECKING:
    from pathlib import Path

# Known SHA256 of "hello world"
HELLO_SHA256 = "b94d27b9934d3e08a52e52d7da7dabfac484efe37a5380ee9088f7ace2efcde9"


class _ChunkRecordingStream(io.BytesIO):
    """BytesIO that records the size requested by each read()."""

    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.read_sizes: list[int | None] = []

    def read(self, size: int | None = -1) -> bytes:  # type: ignore[override]
        self.read_sizes.append(size)
        return super().read(size)


class _FailingStream(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        raise OSError("disk went away")


class TestComputeChecksum:
    """Tests for compute_checksum function."""

    def test_known_hash_from_path(self, tmp_path: Path) -> None:
        test_file = tmp_path / "test.txt"
        test_file.write_text("hello world")

        assert compute_checksum(test_file) == HELLO_SHA256

    def test_accepts_str_path(self, tmp_path: Path) -> None:
        test_file = tmp_path / "test.txt"
        test_file.write_text("hello world")

        assert compute_checksum(str(test_file)) == HELLO_SHA256

    def test_binary_stream(self) -> None:
        assert compute_checksum(io.BytesIO(b"hello world")) == HELLO_SHA256

    def test_empty_content(self) -> None:
        assert compute_checksum(io.BytesIO(b"")) == hashlib.sha256(b"").hexdigest()

    def test_lowercase_hex_64(self) -> None:
        result = compute_checksum(io.BytesIO(b"\x00\x01\x02\x03"))
        assert len(result) == 64
        assert result == result.lower()

    def test_reads_in_bounded_chunks(self) -> None:
        """Large content is never read in one call."""
        data = b"x" * (CHUNK_SIZE * 3 + 17)
        stream = _ChunkRecordingStream(data)

        assert compute_checksum(stream) == hashlib.sha256(data).hexdigest()
        assert stream.read_sizes
        assert all(size == CHUNK_SIZE for size in stream.read_sizes)

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            compute_checksum(tmp_path / "nonexistent.tgz")

    def test_read_error_propagates(self) -> None:
        """Read failures surface as OSError, not as a digest."""
        with pytest.raises(OSError, match="disk went away"):
            compute_checksum(_FailingStream())

    def test_single_byte_change_changes_digest(self) -> None:
        original = bytearray(b"craft archive contents")
        mutated = bytearray(original)
        mutated[5] ^= 0x01

        assert compute_checksum(io.BytesIO(bytes(original))) != compute_checksum(
            io.BytesIO(bytes(mutated))
        )

    @pytest.mark.asyncio
    async def test_async_variant(self, tmp_path: Path) -> None:
        test_file = tmp_path / "test.txt"
        test_file.write_text("hello world")

        assert await compute_checksum_async(test_file) == HELLO_SHA256


class TestVerifyChecksum:
    """Tests for verify_checksum function."""

    def test_round_trip(self) -> None:
        content = b"some craft archive"
        checksum = compute_checksum(io.BytesIO(content))

        assert verify_checksum(io.BytesIO(content), checksum) is True

    def test_case_insensitive(self, tmp_path: Path) -> None:
        test_file = tmp_path / "test.txt"
        test_file.write_text("hello world")

        assert verify_checksum(test_file, HELLO_SHA256.upper()) is True

    def test_mismatch(self) -> None:
        assert verify_checksum(io.BytesIO(b"hello world!"), HELLO_SHA256) is False

    def test_read_error_is_not_a_mismatch(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            verify_checksum(tmp_path / "missing", HELLO_SHA256)


class TestFormatChecksum:
    """Tests for format_checksum function."""

    def test_truncates_to_12(self) -> None:
        assert format_checksum(HELLO_SHA256) == "b94d27b9934d"

    def test_short_input_unchanged(self) -> None:
        assert format_checksum("abc123") == "abc123"

    def test_idempotent_on_own_output(self) -> None:
        once = format_checksum(HELLO_SHA256)
        assert format_checksum(once) == once


class TestIsValidChecksum:
    """Tests for is_valid_checksum function."""

    def test_valid(self) -> None:
        assert is_valid_checksum(HELLO_SHA256)
        assert is_valid_checksum(HELLO_SHA256.upper())

    @pytest.mark.parametrize("value", ["", "abc", HELLO_SHA256 + "0", "g" * 64])
    def test_invalid(self, value: str) -> None:
        assert not is_valid_checksum(value)


class TestVerifyArtifact:
    """Tests for verify_artifact function."""

    def test_returns_checksum_on_match(self, tmp_path: Path) -> None:
        artifact = tmp_path / "pkg.tgz"
        artifact.write_text("hello world")

        assert verify_artifact(artifact, HELLO_SHA256.upper()) == HELLO_SHA256

    def test_raises_on_mismatch(self, tmp_path: Path) -> None:
        artifact = tmp_path / "pkg.tgz"
        artifact.write_text("tampered")

        with pytest.raises(IntegrityError) as exc_info:
            verify_artifact(artifact, HELLO_SHA256)

        assert exc_info.value.expected == HELLO_SHA256
        assert exc_info.value.actual == hashlib.sha256(b"tampered").hexdigest()
        assert "SHA256 mismatch" in str(exc_info.value)
