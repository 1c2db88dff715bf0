"""Token store implementations.

This module provides implementations of the TokenStore protocol used by the
token manager to persist auth state.

Implementations:
- MemoryStorage: Process-local dict (tests, short-lived scripts)
- LocalStorage: Client-local persistent storage backed by an injected
  string mapping (a `shelve.Shelf`, a dict proxied from a browser's
  ``localStorage``, ...)
- NativeStorage: Persistence channel exposed by a native host shell
- RedisStorage: Shared persistent storage via Redis

All implementations are async by contract even when the backing mechanism
is synchronous. Adapters constructed without a backing mechanism behave as
an empty store: reads return None, writes and removals are silent no-ops.
This lets the same code run where the mechanism does not exist (test
runners, server-side rendering).
"""

from __future__ import annotations

import inspect
from collections.abc import MutableMapping
from typing import Any

from .protocols import MaybeAwaitable, NativeStorageBackend


async def maybe_await[T](value: MaybeAwaitable[T]) -> T:
    """Await `value` if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


class MemoryStorage:
    """In-process token store.

    Example:
        ```python
        store = MemoryStorage()
        await store.set("accessToken", "eyJ...")
        await store.get("accessToken")  # "eyJ..."
        ```
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str) -> None:
        self._store[key] = value

    async def remove(self, key: str) -> None:
        self._store.pop(key, None)

    def __len__(self) -> int:
        return len(self._store)


class LocalStorage:
    """Client-local persistent storage.

    Wraps a synchronous string mapping. Pass a `shelve.Shelf` for on-disk
    persistence, or any MutableMapping bridged from the host environment.

    Attributes:
        _storage: Backing mapping, or None when the environment has none.
    """

    def __init__(self, storage: MutableMapping[str, str] | None = None) -> None:
        self._storage = storage

    @property
    def available(self) -> bool:
        return self._storage is not None

    async def get(self, key: str) -> str | None:
        if self._storage is None:
            return None
        return self._storage.get(key)

    async def set(self, key: str, value: str) -> None:
        if self._storage is None:
            return
        self._storage[key] = value

    async def remove(self, key: str) -> None:
        if self._storage is None:
            return
        self._storage.pop(key, None)


class NativeStorage:
    """Storage exposed by a native host shell.

    The injected backend follows `NativeStorageBackend`
    (``get_item``/``set_item``/``remove_item``) and may be synchronous or
    asynchronous.
    """

    def __init__(self, native: NativeStorageBackend | None = None) -> None:
        self._native = native

    @property
    def available(self) -> bool:
        return self._native is not None

    async def get(self, key: str) -> str | None:
        if self._native is None:
            return None
        return await maybe_await(self._native.get_item(key))

    async def set(self, key: str, value: str) -> None:
        if self._native is None:
            return
        await maybe_await(self._native.set_item(key, value))

    async def remove(self, key: str) -> None:
        if self._native is None:
            return
        await maybe_await(self._native.remove_item(key))


class RedisStorage:
    """Redis-backed token store.

    Useful when several processes act on behalf of the same user session.
    Works with both ``redis.Redis`` and ``redis.asyncio.Redis``.

    Dependencies:
        Requires the redis package: pip install "resilient-api-client[redis]"

    Example:
        ```python
        import redis

        client = redis.Redis(host="localhost", port=6379)
        store = RedisStorage(client, prefix="session:42:")
        ```

    Attributes:
        _client: Redis client instance, or None for a no-op store.
        _prefix: Namespace prepended to every key.
    """

    def __init__(self, redis_client: Any = None, prefix: str = "auth:") -> None:
        """Initialize Redis storage.

        Args:
            redis_client: Redis client instance. Must support get(), set()
                and delete(). The type is Any to avoid a hard dependency on
                redis package types.
            prefix: Key namespace.
        """
        self._client = redis_client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        """Read a value.

        Raises:
            RuntimeError: If the Redis operation fails.
        """
        if self._client is None:
            return None
        try:
            data = await maybe_await(self._client.get(self._key(key)))
        except Exception as e:
            raise RuntimeError("Failed to read auth state from Redis") from e

        if isinstance(data, bytes):
            return data.decode("utf-8")
        return data

    async def set(self, key: str, value: str) -> None:
        if self._client is None:
            return
        try:
            await maybe_await(self._client.set(self._key(key), value))
        except Exception as e:
            raise RuntimeError("Failed to write auth state to Redis") from e

    async def remove(self, key: str) -> None:
        if self._client is None:
            return
        try:
            await maybe_await(self._client.delete(self._key(key)))
        except Exception as e:
            raise RuntimeError("Failed to remove auth state from Redis") from e
