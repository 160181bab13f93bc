"""Codec interface."""

from typing import Protocol


class ICodec(Protocol):
    """Contract for reversible payload transforms.

    Codecs turn a payload into the bytes written to the store and back.
    """

    def encode(self, data: bytes) -> bytes:
        """Transform a payload before it is stored.

        Args:
            data: The payload.

        Returns:
            The stored representation.
        """
        ...

    def decode(self, data: bytes) -> bytes:
        """Reverse ``encode``.

        Args:
            data: The stored representation.

        Returns:
            The original payload.

        Raises:
            CodecError: If the data was not produced by this codec.
        """
        ...
