"""
Connector caching package.

Short-lived, per-identity caches for directory lookups. Mutations of the
cached remote resource must invalidate the entry before reporting success.
"""

from .resource_cache import CacheEntry, ResourceCache

__all__ = ["CacheEntry", "ResourceCache"]
