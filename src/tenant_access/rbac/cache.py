"""
Permission Cache - time-bounded cache of role permissions.

Entries expire PERMISSION_CACHE_TTL seconds after they are written. Expired
entries are dropped lazily on the next read; there is no eviction thread.
Racing writers for the same key are allowed and the last write wins.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from tenant_access.utils.logging import get_logger

logger = get_logger(__name__)

PERMISSION_CACHE_TTL = 300  # 5 minutes
DEFAULT_SHARDS = 16


@dataclass(frozen=True)
class CachedPermissionSet:
    role_code: str
    permissions: FrozenSet[str]
    expires_at: float


class PermissionCache:
    """
    Role code -> permissions cache.

    Keys are hashed onto a fixed number of shards, each with its own lock, so
    concurrent request threads only contend when they touch the same shard.

    Args:
        ttl_seconds: Lifetime of an entry
        clock: Monotonic time source (injectable for tests)
        shards: Number of independently locked shards
    """

    def __init__(
        self,
        ttl_seconds: float = PERMISSION_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
        shards: int = DEFAULT_SHARDS,
    ):
        if shards < 1:
            raise ValueError("shards must be at least 1")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._shards: List[Tuple[threading.Lock, Dict[str, CachedPermissionSet]]] = [
            (threading.Lock(), {}) for _ in range(shards)
        ]

    def _shard(self, key: str) -> Tuple[threading.Lock, Dict[str, CachedPermissionSet]]:
        return self._shards[hash(key) % len(self._shards)]

    def get(self, role_code: str) -> Optional[FrozenSet[str]]:
        """
        Return cached permissions, or None on a miss (absent or expired).
        """
        lock, entries = self._shard(role_code)
        with lock:
            entry = entries.get(role_code)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del entries[role_code]
                return None
            return entry.permissions

    def get_entry(self, role_code: str) -> Optional[CachedPermissionSet]:
        """Return the raw entry (expired or not) for inspection."""
        lock, entries = self._shard(role_code)
        with lock:
            return entries.get(role_code)

    def set(self, role_code: str, permissions: Iterable[str]) -> CachedPermissionSet:
        entry = CachedPermissionSet(
            role_code=role_code,
            permissions=frozenset(p for p in permissions if p),
            expires_at=self._clock() + self.ttl_seconds,
        )
        lock, entries = self._shard(role_code)
        with lock:
            entries[role_code] = entry
        return entry

    def invalidate(self, role_code: Optional[str] = None) -> int:
        """
        Remove one entry, or every entry when role_code is None.

        Returns:
            Number of entries removed
        """
        if role_code is not None:
            lock, entries = self._shard(role_code)
            with lock:
                removed = 1 if entries.pop(role_code, None) is not None else 0
        else:
            removed = 0
            for lock, entries in self._shards:
                with lock:
                    removed += len(entries)
                    entries.clear()

        logger.debug(f"Permission cache cleared for: {role_code or 'ALL'} ({removed} entries)")
        return removed

    def __len__(self) -> int:
        total = 0
        for lock, entries in self._shards:
            with lock:
                total += len(entries)
        return total
