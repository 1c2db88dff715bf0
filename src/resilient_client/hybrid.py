"""Token management for a client embedded in a native host shell.

When the client runs inside a shell (e.g. a web view in a mobile app) that
keeps its own authenticated session, two sources of auth state exist: the
shell's, reached through an injected bridge object, and the local token
store. `HybridTokenManager` resolves them with one rule: when a bridge is
present the host wins, and local storage is kept in sync as a fast cache.

Bridge detection happens once, at construction, and yields one of two
capability values:

- `HostBridgeAvailable(bridge)`
- `HostBridgeAbsent()`

The manager holds that value and never re-probes the environment.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from .token_manager import ACCESS_TOKEN_KEY, USER_KEY, TokenInfo, TokenManager
from .token_stores import maybe_await

if TYPE_CHECKING:
    from .protocols import HostBridge, TokenStore, User

logger = logging.getLogger(__name__)

DEFAULT_BRIDGE_NAME: Final[str] = "ReactNativeWebView"
"""Name under which the native shell injects its bridge object."""

LOGOUT_ACTION: Final[str] = "logout"


@dataclass(frozen=True, slots=True)
class HostBridgeAvailable:
    bridge: HostBridge


@dataclass(frozen=True, slots=True)
class HostBridgeAbsent:
    pass


type HostBridgeCapability = HostBridgeAvailable | HostBridgeAbsent


def detect_host_bridge(
    namespace: Mapping[str, Any] | object | None,
    name: str = DEFAULT_BRIDGE_NAME,
) -> HostBridgeCapability:
    """Look for an injected bridge object.

    Args:
        namespace: Where the shell injects globals; a mapping (e.g. a dict
            of globals) or an object whose attribute holds the bridge.
        name: Key or attribute name of the bridge.
    """
    if namespace is None:
        return HostBridgeAbsent()

    if isinstance(namespace, Mapping):
        bridge = namespace.get(name)
    else:
        bridge = getattr(namespace, name, None)

    if bridge is None:
        return HostBridgeAbsent()
    return HostBridgeAvailable(bridge)


class HybridTokenManager(TokenManager):
    """`TokenManager` that prefers the host shell's session.

    Reads go to the bridge first and fall back to local storage. Writes
    always land in local storage and are pushed to the bridge on a best
    effort basis: a bridge failure is logged and never fails the call,
    because local state remains the fallback.

    Example:
        ```python
        manager = HybridTokenManager(
            LocalStorage(storage),
            bridge=detect_host_bridge(window_globals),
        )
        await manager.initialize_from_native()
        ```
    """

    def __init__(
        self,
        store: TokenStore,
        *,
        bridge: HostBridgeCapability | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(store, **kwargs)
        self._bridge: HostBridgeCapability = bridge or HostBridgeAbsent()

    @property
    def has_host_bridge(self) -> bool:
        return isinstance(self._bridge, HostBridgeAvailable)

    async def _stored_auth(self) -> Mapping[str, Any] | None:
        """Ask the host for its session; None when absent or on failure."""
        match self._bridge:
            case HostBridgeAvailable(bridge=bridge):
                try:
                    auth = await maybe_await(bridge.get_stored_auth())
                except Exception:
                    logger.warning("Host bridge failed to return stored auth", exc_info=True)
                    return None
                return auth if isinstance(auth, Mapping) else None
            case _:
                return None

    async def get_token(self) -> str | None:
        auth = await self._stored_auth()
        if auth:
            token = auth.get("token")
            if isinstance(token, str) and token:
                return token
        return await super().get_token()

    async def get_user(self) -> User | None:
        auth = await self._stored_auth()
        if auth:
            user = auth.get("user")
            if isinstance(user, Mapping):
                return user
        return await super().get_user()

    async def set_token_info(self, info: TokenInfo) -> None:
        await super().set_token_info(info)

        match self._bridge:
            case HostBridgeAvailable(bridge=bridge):
                try:
                    await maybe_await(bridge.sync_token(info.access_token, info.user))
                except Exception:
                    logger.warning("Failed to sync token to host", exc_info=True)
            case _:
                pass

    async def clear_tokens(self) -> None:
        """Clear local state and log the host out.

        The host logout runs even when a local removal fails; the local
        failure is re-raised afterwards.
        """
        try:
            await super().clear_tokens()
        finally:
            await self._logout_host()

    async def _logout_host(self) -> None:
        match self._bridge:
            case HostBridgeAvailable(bridge=bridge):
                try:
                    await maybe_await(bridge.auth(LOGOUT_ACTION))
                except Exception:
                    logger.warning("Failed to clear host session", exc_info=True)
            case _:
                pass

    async def initialize_from_native(self) -> bool:
        """Mirror the host session into local storage.

        Returns:
            True if a host token was found and copied.
        """
        auth = await self._stored_auth()
        if not auth:
            return False

        token = auth.get("token")
        if not isinstance(token, str) or not token:
            return False

        # Local writes only; pushing back to the host would be circular.
        await self._store.set(ACCESS_TOKEN_KEY, token)
        user = auth.get("user")
        if isinstance(user, Mapping):
            await self._store.set(USER_KEY, json.dumps(dict(user)))
        logger.debug("Initialized local auth state from host session")
        return True
