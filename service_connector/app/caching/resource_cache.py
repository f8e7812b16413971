"""
Short-lived, per-identity memoization of directory lookups.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Hashable, List, Optional, TYPE_CHECKING

from shared.logging import get_logger, mask_identifier

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_DESCRIBE_LIMIT = 20


@dataclass
class CacheEntry:
    value: Any
    created_at: float  # monotonic seconds
    cached_at: float   # wall-clock epoch seconds


def _mask_key(key: Hashable) -> str:
    if isinstance(key, tuple):
        identity_id, *rest = key
        return ":".join([mask_identifier(identity_id)] + [str(part) for part in rest])
    return mask_identifier(key)


class ResourceCache:
    """TTL cache keyed by identity id or ``(identity_id, scope)``.

    Entries are valid while ``now - created_at < ttl``; expired entries are not
    swept and are simply overwritten by the next ``set``.
    """

    def __init__(self,
                 name: str,
                 ttl: float,
                 *,
                 clock: Callable[[], float] = time.monotonic,
                 wall_clock: Callable[[], float] = time.time,
                 value_summary: Optional[Callable[[Any], Any]] = None,
                 metrics: Optional["MetricsCollector"] = None):
        self.name = name
        self.ttl = ttl
        self._clock = clock
        self._wall_clock = wall_clock
        self._value_summary = value_summary
        self.metrics = metrics
        self._entries: Dict[Hashable, CacheEntry] = {}
        self.logger = get_logger(f"connector.cache.{name}")

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._entries.get(key)
        hit = entry is not None and self._clock() - entry.created_at < self.ttl
        if self.metrics:
            self.metrics.record_cache_access(self.name, hit)
        if not hit:
            return default
        return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, created_at=self._clock(), cached_at=self._wall_clock())

    def invalidate(self, key: Hashable) -> bool:
        """Drop one entry; returns whether anything was removed."""
        return self._entries.pop(key, None) is not None

    def invalidate_all(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        if count:
            self.logger.info("Cache flushed", cache=self.name, entries=count)
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def describe(self, limit: int = DEFAULT_DESCRIBE_LIMIT) -> Dict[str, Any]:
        """Diagnostic snapshot. Keys are masked; values only appear via ``value_summary``."""
        now = self._clock()
        ordered = sorted(self._entries.items(), key=lambda item: item[1].created_at)

        entries: List[Dict[str, Any]] = []
        for key, entry in ordered[:max(0, limit)]:
            age = now - entry.created_at
            description = {
                "key": _mask_key(key),
                "cached_at": datetime.fromtimestamp(entry.cached_at, tz=timezone.utc).isoformat(),
                "age_seconds": round(age, 3),
                "expires_in_seconds": round(max(0.0, self.ttl - age), 3),
            }
            if self._value_summary is not None:
                description["summary"] = self._value_summary(entry.value)
            entries.append(description)

        return {
            "name": self.name,
            "ttl_seconds": self.ttl,
            "size": len(self._entries),
            "entries": entries,
        }
