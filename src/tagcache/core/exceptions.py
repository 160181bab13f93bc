"""Exceptions raised by tagcache."""


class TagCacheError(Exception):
    """Base class for all tagcache errors."""

    pass


class InvalidArgumentError(TagCacheError, ValueError):
    """Raised for malformed identifiers, tags, lifetimes or settings."""

    pass


class InvalidDataError(TagCacheError, TypeError):
    """Raised when a payload is not a byte payload."""

    pass


class CodecError(TagCacheError):
    """Raised when a stored payload cannot be decoded."""

    pass


class StoreError(TagCacheError):
    """Base class for failures reported by the backing store."""

    pass


class StoreConnectionError(StoreError):
    """Raised when the store cannot be reached."""

    pass


class StoreOperationError(StoreError):
    """Raised when a store command or batch fails."""

    pass


class BatchAbortedError(StoreOperationError):
    """Raised when a watched key changed before a batch was executed.

    Nothing from the batch has been applied.
    """

    pass
