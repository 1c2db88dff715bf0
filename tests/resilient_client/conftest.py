import time
from typing import Any

import jwt
import pytest

SECRET = "test-secret-key-for-hs256-signing-0123456789"


@pytest.fixture
def make_jwt():
    """
    Factory fixture that returns a function.

    Usage in tests:
        token = make_jwt(exp_in=3600, sub="u1")
    """

    def _make(*, exp_in: float | None = 3600, **claims: Any) -> str:
        payload: dict[str, Any] = {"sub": "user-1", **claims}
        if exp_in is not None:
            payload["exp"] = int(time.time() + exp_in)
        return jwt.encode(payload, SECRET, algorithm="HS256")

    return _make


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays (seconds)."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


class FakeRedis:
    """
    Minimal redis stub for RedisStorage tests.
    Stores bytes under keys like redis-py without decode_responses.
    """

    def __init__(self):
        self._store: dict[str, bytes] = {}

    def get(self, key: str):
        return self._store.get(key)

    def set(self, key: str, value: str | bytes):
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._store[key] = value
        return True

    def delete(self, key: str):
        return 1 if self._store.pop(key, None) is not None else 0


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


class FakeBridge:
    """Host bridge double. Records sync/auth calls; can be told to fail."""

    def __init__(self, token: str | None = None, user: dict | None = None):
        self.token = token
        self.user = user
        self.synced: list[tuple[str, Any]] = []
        self.actions: list[str] = []
        self.fail = False

    async def get_stored_auth(self):
        if self.fail:
            raise RuntimeError("bridge unavailable")
        if self.token is None:
            return None
        return {"token": self.token, "user": self.user}

    def sync_token(self, token, user):
        if self.fail:
            raise RuntimeError("bridge unavailable")
        self.synced.append((token, user))

    def auth(self, action):
        if self.fail:
            raise RuntimeError("bridge unavailable")
        self.actions.append(action)


@pytest.fixture
def fake_bridge() -> FakeBridge:
    return FakeBridge()
