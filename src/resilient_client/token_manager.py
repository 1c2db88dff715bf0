"""Token persistence and client-side expiry detection.

`TokenManager` is the only component that reads or writes auth state in the
token store. Callers ask it for a valid token before every authenticated
request; it answers without any network call by reading the JWT ``exp``
claim.

Lifecycle of a stored token
---------------------------
- Absent -> Valid on `set_token_info`
- Valid -> Expired once ``now >= exp``
- Expired -> Absent when the refresh hook cannot produce a new token
  (without a refresher this always happens and the store is cleared)
- any -> Absent on `clear_tokens`

Consistency
-----------
The store offers no cross-key atomicity and is never locked. A crash or an
interleaving between the writes of `set_token_info` can leave a partially
updated record. That is tolerated: a later `get_valid_token` either finds a
usable token or fails decoding, and a token that fails decoding is always
treated as expired.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from .errors import TokenDecodeError
from .jwt_payload import JWTPayloadDecoder

if TYPE_CHECKING:
    from .protocols import Refresher, TokenStore, User

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY: Final[str] = "accessToken"
REFRESH_TOKEN_KEY: Final[str] = "refreshToken"
USER_KEY: Final[str] = "user"
TOKEN_EXPIRY_KEY: Final[str] = "tokenExpiry"

STORE_KEYS: Final[tuple[str, ...]] = (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USER_KEY,
    TOKEN_EXPIRY_KEY,
)


@dataclass(frozen=True, slots=True)
class TokenInfo:
    """Result of a login, registration or refresh.

    Attributes:
        access_token: Compact JWT sent as the bearer credential.
        refresh_token: Opaque token used to obtain a new access token.
        expiry_time: Epoch milliseconds. When None, derived from the access
            token's ``exp`` claim on write.
        user: Snapshot of the authenticated user.
    """

    access_token: str
    refresh_token: str | None = None
    expiry_time: int | None = None
    user: User | None = None

    @classmethod
    def from_response(cls, data: Mapping[str, Any]) -> TokenInfo:
        """Build from a backend auth response.

        Accepts both ``{"token": ..., "user": ...}`` and
        ``{"accessToken": ..., "refreshToken": ..., "expiryTime": ...}``.

        Raises:
            ValueError: If the response carries no access token.
        """
        access = data.get("accessToken") or data.get("token")
        if not isinstance(access, str) or not access:
            raise ValueError("Auth response does not contain an access token")

        expiry = data.get("expiryTime")
        return cls(
            access_token=access,
            refresh_token=data.get("refreshToken") or None,
            expiry_time=int(expiry) if isinstance(expiry, (int, float)) else None,
            user=data.get("user") or None,
        )


class TokenManager:
    """Owns auth state in a `TokenStore`.

    Construct one per application and pass it to every component that
    needs auth state; all mutation goes through the methods below.

    Example:
        ```python
        manager = TokenManager(LocalStorage(shelve.open("auth.db")))
        await manager.set_token_info(TokenInfo(access_token=jwt, user=user))

        token = await manager.get_valid_token()  # None once expired
        ```

    Attributes:
        _store: Persistence backend.
        _decoder: JWT payload decoder (base64 strategy fixed at startup).
        _clock: Returns the current epoch time in seconds.
        _refresher: Optional coroutine exchanging a refresh token for a new
            `TokenInfo`.
        _refresh_task: In-flight refresh shared by concurrent callers.
    """

    def __init__(
        self,
        store: TokenStore,
        *,
        decoder: JWTPayloadDecoder | None = None,
        clock: Callable[[], float] = time.time,
        refresher: Refresher | None = None,
    ) -> None:
        self._store = store
        self._decoder = decoder or JWTPayloadDecoder()
        self._clock = clock
        self._refresher = refresher
        self._refresh_task: asyncio.Future[str | None] | None = None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set_token_info(self, info: TokenInfo) -> None:
        """Persist a new session.

        The expiry written is `info.expiry_time` when given, otherwise the
        access token's ``exp`` claim in milliseconds. When neither is
        available no expiry entry is written.
        """
        await self._store.set(ACCESS_TOKEN_KEY, info.access_token)

        if info.refresh_token:
            await self._store.set(REFRESH_TOKEN_KEY, info.refresh_token)

        if info.user is not None:
            await self._store.set(USER_KEY, json.dumps(dict(info.user)))

        expiry = info.expiry_time
        if expiry is None:
            expiry = self._decoder.expiry_ms(info.access_token)
        if expiry is not None:
            await self._store.set(TOKEN_EXPIRY_KEY, str(expiry))

    async def clear_tokens(self) -> None:
        """Remove every auth entry.

        All removals are attempted even if some fail; completed removals are
        not rolled back. The first failure is re-raised afterwards.
        """
        results = await asyncio.gather(
            *(self._store.remove(key) for key in STORE_KEYS),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            logger.warning("Failed to clear %d auth entries", len(errors))
            raise errors[0]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_token(self) -> str | None:
        return await self._store.get(ACCESS_TOKEN_KEY) or None

    async def get_refresh_token(self) -> str | None:
        return await self._store.get(REFRESH_TOKEN_KEY) or None

    async def get_user(self) -> User | None:
        raw = await self._store.get(USER_KEY)
        if not raw:
            return None
        try:
            user = json.loads(raw)
        except ValueError:
            logger.debug("Stored user snapshot is not valid JSON; ignoring")
            return None
        return user if isinstance(user, dict) else None

    async def get_token_expiry(self) -> int | None:
        """Stored expiry in epoch milliseconds, if any."""
        raw = await self._store.get(TOKEN_EXPIRY_KEY)
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    async def get_valid_token(self) -> str | None:
        """Return the stored access token if it is not expired.

        An expired (or undecodable) token is handed to `refresh_token`,
        whose result is returned.
        """
        token = await self.get_token()
        if not token:
            return None

        if self.is_token_expired(token):
            logger.info("Access token expired; attempting refresh")
            return await self.refresh_token()

        return token

    async def is_authenticated(self) -> bool:
        return await self.get_valid_token() is not None

    # ------------------------------------------------------------------
    # JWT inspection
    # ------------------------------------------------------------------

    def decode_jwt_payload(self, token: str) -> dict[str, Any]:
        """Decode the payload without verification.

        Raises:
            TokenDecodeError: On any decoding failure.
        """
        return self._decoder.decode(token)

    def is_token_expired(self, token: str | None) -> bool:
        """True if the token is missing, undecodable, or past its ``exp``."""
        if not token:
            return True
        try:
            exp = self._decoder.exp_seconds(token)
        except TokenDecodeError:
            return True
        return math.floor(self._clock()) >= exp

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh_token(self) -> str | None:
        """Obtain a new access token, or clear state and return None.

        Concurrent callers share one in-flight refresh.
        """
        task = self._refresh_task
        if task is None:
            task = asyncio.ensure_future(self._perform_refresh())
            self._refresh_task = task
            task.add_done_callback(self._forget_refresh)
        return await asyncio.shield(task)

    def _forget_refresh(self, task: asyncio.Future[str | None]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _perform_refresh(self) -> str | None:
        if self._refresher is None:
            await self.clear_tokens()
            return None
        return await self.refresh_with(self._refresher)

    async def refresh_with(self, refresher: Refresher) -> str | None:
        """Exchange the stored refresh token using `refresher`.

        Without a stored refresh token, or when `refresher` fails, the
        stored state is cleared and None is returned.
        """
        refresh_token = await self.get_refresh_token()
        if not refresh_token:
            await self.clear_tokens()
            return None

        try:
            info = await refresher(refresh_token)
            await self.set_token_info(info)
        except Exception:
            logger.warning("Token refresh failed; clearing session", exc_info=True)
            await self.clear_tokens()
            return None

        return info.access_token
