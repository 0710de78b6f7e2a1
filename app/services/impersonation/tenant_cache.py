from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Optional, Tuple

# query keys whose results depend on the effective organization
TENANT_SCOPED_KEYS: Tuple[str, ...] = (
    "contentBlocks",
    "effective-industry-sectors",
    "organization-sectors",
    "homeConfig",
)

CacheKey = Tuple[Any, ...]


class TenantCache:
    """
    Query-result cache keyed by tuples whose first element is the query key,
    e.g. ("homeConfig", org_id). Invalidation works on the query key.

    This is where tenant-scoped reads for a browser session are memoised:
    a reader resolves the effective organization through the impersonation
    manager, then calls

        caches.for_session(session_id).get_or_load(("homeConfig", org_id), load)

    Starting or stopping impersonation drops every TENANT_SCOPED_KEYS entry,
    so the next read loads data for the new organization.
    """

    def __init__(self):
        self._entries: Dict[CacheKey, Any] = {}

    def get(self, key: CacheKey, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def set(self, key: CacheKey, value: Any) -> None:
        self._entries[key] = value

    def get_or_load(self, key: CacheKey, loader: Callable[[], Any]) -> Any:
        if key not in self._entries:
            self._entries[key] = loader()
        return self._entries[key]

    def invalidate(self, query_key: str) -> int:
        stale = [k for k in self._entries if k and k[0] == query_key]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def invalidate_many(self, query_keys: Iterable[str] = TENANT_SCOPED_KEYS) -> int:
        return sum(self.invalidate(q) for q in query_keys)

    def __len__(self) -> int:
        return len(self._entries)


class TenantCacheRegistry:
    """
    One TenantCache per browser session.

    Caches are created by readers through for_session() and freed with
    release() when the session's impersonation ends. get() never creates.
    """

    def __init__(self):
        self._caches: Dict[str, TenantCache] = {}

    def get(self, session_id: str) -> Optional[TenantCache]:
        return self._caches.get(session_id)

    def for_session(self, session_id: str) -> TenantCache:
        cache = self._caches.get(session_id)
        if cache is None:
            cache = self._caches[session_id] = TenantCache()
        return cache

    def release(self, session_id: str) -> None:
        self._caches.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._caches)
