"""Default key namer implementation."""

import uuid

from tagcache.core.exceptions import InvalidArgumentError

DATA_PREFIX = "data:"
TAGS_PREFIX = "tags-of:"
TAG_IDENTIFIERS_PREFIX = "idents-of:"
TEMPORARY_PREFIX = "temp:"

GLOB_CHARACTERS = "*?[]\\"


class DefaultKeyNamer:
    """Key namer for the three tagged cache key families.

    Produces ``data:<identifier>``, ``tags-of:<identifier>`` and
    ``idents-of:<tag>``, optionally behind a namespace prefix so that
    several caches can share one store database.
    """

    def __init__(self, prefix: str = "") -> None:
        """Initialize the key namer.

        Args:
            prefix: Namespace prepended to every key, e.g. ``"pages:"``.

        Raises:
            InvalidArgumentError: If prefix contains glob metacharacters.
        """
        if any(char in GLOB_CHARACTERS for char in prefix):
            raise InvalidArgumentError(
                f"The key prefix {prefix!r} must not contain any of {GLOB_CHARACTERS!r}."
            )
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        """The namespace prefix."""
        return self._prefix

    def data_key(self, identifier: str) -> str:
        """Build the key holding an entry's payload.

        Args:
            identifier: The entry identifier.

        Returns:
            The data key.
        """
        return f"{self._prefix}{DATA_PREFIX}{identifier}"

    def tags_key(self, identifier: str) -> str:
        """Build the key of the set of tags carried by an entry.

        Args:
            identifier: The entry identifier.

        Returns:
            The tag set key.
        """
        return f"{self._prefix}{TAGS_PREFIX}{identifier}"

    def tag_identifiers_key(self, tag: str) -> str:
        """Build the key of the set of identifiers carrying a tag.

        Args:
            tag: The tag.

        Returns:
            The membership set key.
        """
        return f"{self._prefix}{TAG_IDENTIFIERS_PREFIX}{tag}"

    def temporary_key(self) -> str:
        """Build a unique key for a short-lived scratch set."""
        return f"{self._prefix}{TEMPORARY_PREFIX}{uuid.uuid4().hex}"

    def tags_key_pattern(self) -> str:
        """Return the glob pattern matching every tag set key of this namer."""
        return f"{self._prefix}{TAGS_PREFIX}*"

    def namespace_pattern(self) -> str | None:
        """Return the glob pattern matching all keys of this namer.

        Returns:
            ``<prefix>*``, or None without a prefix, meaning the whole
            store database belongs to this cache.
        """
        return f"{self._prefix}*" if self._prefix else None

    def identifier_from_tags_key(self, key: str) -> str:
        """Recover the identifier from a tag set key.

        Only the leading prefix is stripped, so identifiers containing
        ``:`` survive intact.

        Args:
            key: A key produced by ``tags_key``.

        Returns:
            The identifier.

        Raises:
            ValueError: If key is not a tag set key of this namer.
        """
        head = f"{self._prefix}{TAGS_PREFIX}"
        if not key.startswith(head):
            raise ValueError(f"{key!r} is not a tag set key")
        return key[len(head):]

