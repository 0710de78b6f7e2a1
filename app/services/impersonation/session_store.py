from __future__ import annotations

from typing import Dict, Optional, Protocol


class KeyValueStore(Protocol):
    """What the impersonation manager needs from browser-session storage."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemorySessionStore:
    """Process-local string store. One instance backs every browser session."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def scoped(self, namespace: str) -> "ScopedSessionStore":
        return ScopedSessionStore(self, namespace)

    def __len__(self) -> int:
        return len(self._data)


class ScopedSessionStore:
    """View of a store where every key is prefixed with a browser session id."""

    def __init__(self, backend: KeyValueStore, namespace: str):
        if not namespace:
            raise ValueError("namespace is required")
        self._backend = backend
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        return self._backend.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        self._backend.set(self._key(key), value)

    def delete(self, key: str) -> None:
        self._backend.delete(self._key(key))
