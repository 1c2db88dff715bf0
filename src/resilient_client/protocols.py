"""Protocol definitions for the API client core.

This module defines structural interfaces using Protocol (PEP 544) for:
- Token persistence (the async key/value store the token manager owns)
- Host bridges injected by an embedding native shell
- Native persistence channels exposed through such a shell

Any object with the right methods satisfies a protocol; no inheritance is
required, which keeps test doubles trivial.

Type aliases give names to the callables passed between components.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .errors import ApiError
    from .token_manager import TokenInfo

# ============================================================================
# Type Aliases
# ============================================================================

type User = Mapping[str, Any]
"""Snapshot of the authenticated user as returned by the backend."""

type RetryPredicate = Callable[[BaseException], bool]
"""Decides whether a failed attempt should be retried."""

type AuthExpiredHook = Callable[[ApiError], Awaitable[None]]
"""Called by the request executor when a response signals auth expiry."""

type Refresher = Callable[[str], Awaitable[TokenInfo]]
"""Exchanges a refresh token for a fresh `TokenInfo`."""

type MaybeAwaitable[T] = T | Awaitable[T]


# ============================================================================
# Core Protocols
# ============================================================================


class TokenStore(Protocol):
    """Async string-keyed, string-valued persistence.

    Each call is awaited independently; there is no ordering or atomicity
    guarantee across keys. Implementations whose backing mechanism is
    unavailable must behave as an empty store: `get` returns None and
    `set`/`remove` silently succeed.
    """

    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if absent."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store `value` under `key`, replacing any previous value."""
        ...

    async def remove(self, key: str) -> None:
        """Delete `key`. Removing a missing key is not an error."""
        ...


class NativeStorageBackend(Protocol):
    """Persistence channel exposed by a native shell (AsyncStorage-like).

    Methods may be synchronous or return awaitables.
    """

    def get_item(self, key: str) -> MaybeAwaitable[str | None]: ...

    def set_item(self, key: str, value: str) -> MaybeAwaitable[None]: ...

    def remove_item(self, key: str) -> MaybeAwaitable[None]: ...


class HostBridge(Protocol):
    """Object injected by an embedding native shell.

    The shell owns an authoritative session of its own. Methods may be
    synchronous or return awaitables.
    """

    def get_stored_auth(self) -> MaybeAwaitable[Mapping[str, Any] | None]:
        """Return ``{"token": ..., "user": ...}`` or None when logged out."""
        ...

    def sync_token(self, token: str, user: User | None) -> MaybeAwaitable[None]:
        """Push a new session to the shell."""
        ...

    def auth(self, action: str) -> MaybeAwaitable[None]:
        """Run a shell auth action; ``"logout"`` clears the shell session."""
        ...
