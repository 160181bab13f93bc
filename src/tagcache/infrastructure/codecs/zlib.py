"""Zlib codec implementation."""

import zlib

from tagcache.core.entities.cache_config import validate_compression_level
from tagcache.core.exceptions import CodecError


class ZlibCodec:
    """Zlib compression codec for cached payloads.

    Produces zlib streams (header, deflate data and Adler-32 checksum), so
    payloads written by other zlib-based clients of the same store decode
    as well.
    """

    def __init__(self, level: int = -1) -> None:
        """Initialize the codec.

        Args:
            level: Compression level from -1 (zlib default) to 9.

        Raises:
            InvalidArgumentError: If level is out of range.
        """
        self._level = validate_compression_level(level)

    @property
    def level(self) -> int:
        """The compression level."""
        return self._level

    @level.setter
    def level(self, level: int) -> None:
        self._level = validate_compression_level(level)

    def encode(self, data: bytes) -> bytes:
        """Compress a payload.

        Args:
            data: The payload.

        Returns:
            The zlib stream.
        """
        return zlib.compress(data, self._level)

    def decode(self, data: bytes) -> bytes:
        """Decompress a payload.

        Args:
            data: A zlib stream.

        Returns:
            The original payload.

        Raises:
            CodecError: If data is not a valid zlib stream.
        """
        try:
            return zlib.decompress(data)
        except zlib.error as e:
            raise CodecError(f"Failed to decompress data: {e}") from e
