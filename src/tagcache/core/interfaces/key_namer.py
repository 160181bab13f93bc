"""Key namer interface."""

from typing import Protocol


class IKeyNamer(Protocol):
    """Contract for mapping identifiers and tags to physical store keys.

    Key namers are pure: the same input always yields the same key.
    """

    def data_key(self, identifier: str) -> str:
        """Key holding the payload of an entry."""
        ...

    def tags_key(self, identifier: str) -> str:
        """Key holding the tag set of an entry."""
        ...

    def tag_identifiers_key(self, tag: str) -> str:
        """Key holding the identifiers labelled with a tag."""
        ...

    def temporary_key(self) -> str:
        """A fresh key for scratch data inside a batch."""
        ...

    def tags_key_pattern(self) -> str:
        """Glob pattern matching every tag set key."""
        ...

    def namespace_pattern(self) -> str | None:
        """Glob pattern matching every key of this cache.

        None when the cache owns the whole store database.
        """
        ...

    def identifier_from_tags_key(self, key: str) -> str:
        """Recover the identifier from a tag set key."""
        ...
