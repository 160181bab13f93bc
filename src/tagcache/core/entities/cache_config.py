"""Cache configuration entity."""

from dataclasses import dataclass

from tagcache.core.exceptions import InvalidArgumentError

# One year. The store has no "permanent but tagged" primitive, so every entry
# gets an expiry and this value stands in for "unlimited".
UNLIMITED_LIFETIME = 31536000

MIN_COMPRESSION_LEVEL = -1
MAX_COMPRESSION_LEVEL = 9


def validate_compression_level(level: object) -> int:
    """Check a zlib compression level.

    Args:
        level: The candidate level.

    Returns:
        The level, unchanged.

    Raises:
        InvalidArgumentError: If the level is not an integer in [-1, 9].
    """
    if not isinstance(level, int) or isinstance(level, bool):
        raise InvalidArgumentError(
            f'The specified compression level is of type "{type(level).__name__}" '
            "but an integer is expected."
        )
    if not MIN_COMPRESSION_LEVEL <= level <= MAX_COMPRESSION_LEVEL:
        raise InvalidArgumentError(
            "The specified compression level must be an integer between "
            f"{MIN_COMPRESSION_LEVEL} and {MAX_COMPRESSION_LEVEL}."
        )
    return level


@dataclass
class CacheConfig:
    """Cache configuration.

    Lifetimes are whole seconds. A ``default_lifetime`` of 0 means entries
    written without an explicit lifetime are kept for ``unlimited_lifetime``
    seconds.

    Compression:
        When ``compression`` is enabled payloads are zlib-compressed with
        ``compression_level`` before they are stored. -1 selects zlib's
        default level, 0 stores the payload in a zlib frame without
        compressing it.
    """

    default_lifetime: int = 3600
    unlimited_lifetime: int = UNLIMITED_LIFETIME
    compression: bool = False
    compression_level: int = -1

    # Attempts for a read-then-write index update before giving up
    max_batch_attempts: int = 10

    def __post_init__(self) -> None:
        """Validate the settings."""
        if not _is_int(self.default_lifetime) or self.default_lifetime < 0:
            raise InvalidArgumentError(
                f'The default lifetime "{self.default_lifetime}" must be an '
                "integer greater or equal than zero."
            )
        if not _is_int(self.unlimited_lifetime) or self.unlimited_lifetime <= 0:
            raise InvalidArgumentError(
                f'The unlimited lifetime "{self.unlimited_lifetime}" must be a '
                "positive integer."
            )
        if not isinstance(self.compression, bool):
            raise InvalidArgumentError(
                f'The specified compression is of type "{type(self.compression).__name__}" '
                "but a boolean is expected."
            )
        validate_compression_level(self.compression_level)
        if not _is_int(self.max_batch_attempts) or self.max_batch_attempts < 1:
            raise InvalidArgumentError(
                f'max_batch_attempts "{self.max_batch_attempts}" must be at least 1.'
            )

    def expiry_for(self, lifetime: int) -> int:
        """Return the store expiry in seconds for a validated lifetime."""
        return self.unlimited_lifetime if lifetime == 0 else lifetime


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
