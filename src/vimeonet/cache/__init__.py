"""Response caching for vimeonet.

This package provides :class:`ResponseCache`, the key/value store the
request engine consults for cache-first requests and writes after a
response has been mapped successfully. Entries live in memory and,
optionally, on disk via :mod:`diskcache`.
"""

from vimeonet.cache.cache import ResponseCache

__all__ = ["ResponseCache"]
