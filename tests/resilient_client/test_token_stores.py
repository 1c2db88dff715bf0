import pytest

import resilient_client as m


class SyncNative:
    def __init__(self):
        self.items: dict[str, str] = {}

    def get_item(self, key):
        return self.items.get(key)

    def set_item(self, key, value):
        self.items[key] = value

    def remove_item(self, key):
        self.items.pop(key, None)


class AsyncNative(SyncNative):
    async def get_item(self, key):
        return self.items.get(key)

    async def set_item(self, key, value):
        self.items[key] = value

    async def remove_item(self, key):
        self.items.pop(key, None)


@pytest.mark.asyncio
async def test_memory_storage_roundtrip():
    store = m.MemoryStorage()
    await store.set("k", "v")
    assert await store.get("k") == "v"
    await store.remove("k")
    assert await store.get("k") is None
    await store.remove("k")  # removing twice is fine


@pytest.mark.asyncio
async def test_local_storage_writes_through_to_mapping():
    backing: dict[str, str] = {}
    store = m.LocalStorage(backing)
    await store.set("accessToken", "abc")
    assert backing == {"accessToken": "abc"}
    assert await store.get("accessToken") == "abc"
    await store.remove("accessToken")
    assert backing == {}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "store",
    [m.LocalStorage(), m.NativeStorage(), m.RedisStorage()],
    ids=["local", "native", "redis"],
)
async def test_missing_backend_is_a_silent_empty_store(store):
    await store.set("k", "v")
    assert await store.get("k") is None
    await store.remove("k")


@pytest.mark.asyncio
@pytest.mark.parametrize("backend_cls", [SyncNative, AsyncNative])
async def test_native_storage_sync_and_async_backends(backend_cls):
    backend = backend_cls()
    store = m.NativeStorage(backend)
    await store.set("user", "{}")
    assert backend.items == {"user": "{}"}
    assert await store.get("user") == "{}"
    await store.remove("user")
    assert await store.get("user") is None


@pytest.mark.asyncio
async def test_redis_storage_roundtrip(fake_redis):
    store = m.RedisStorage(fake_redis, prefix="s1:")
    await store.set("accessToken", "abc")
    assert fake_redis.get("s1:accessToken") == b"abc"
    assert await store.get("accessToken") == "abc"
    await store.remove("accessToken")
    assert await store.get("accessToken") is None


@pytest.mark.asyncio
async def test_redis_storage_wraps_client_failures():
    class Broken:
        def get(self, key):
            raise ConnectionError("down")

    store = m.RedisStorage(Broken())
    with pytest.raises(RuntimeError):
        await store.get("k")


def test_available_reflects_backend():
    assert m.LocalStorage({}).available is True
    assert m.LocalStorage().available is False
    assert m.NativeStorage(SyncNative()).available is True
    assert m.NativeStorage().available is False
