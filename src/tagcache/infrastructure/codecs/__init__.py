"""Payload codec implementations."""

from tagcache.infrastructure.codecs.zlib import ZlibCodec

__all__ = ["ZlibCodec"]
