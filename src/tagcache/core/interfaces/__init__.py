"""Core interfaces (Protocol classes) for tagcache."""

from tagcache.core.interfaces.codec import ICodec
from tagcache.core.interfaces.key_namer import IKeyNamer
from tagcache.core.interfaces.store import IBatch, IStore

__all__ = [
    "IBatch",
    "ICodec",
    "IKeyNamer",
    "IStore",
]
