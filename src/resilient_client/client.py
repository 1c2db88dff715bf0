"""Authenticated HTTP request executor.

High-level flow (per call)
--------------------------
1. `ApiClient.request(path, ...)` resolves the timeout for the call.
2. Each attempt:
   - builds the URL from the configured base URL and `path`
   - asks the `TokenManager` for a valid token
   - merges headers: ``Content-Type: application/json``, then
     ``Authorization: Bearer <token>``, then caller headers (caller wins)
   - sends the request under a timer; when the timer fires the attempt
     fails with ``ApiError(code="TIMEOUT", status=408)``
   - maps a non-2xx response to an `ApiError`; on auth expiry the
     configured hook runs before the error is raised
3. With retry enabled, attempts run inside `with_retry` using the client's
   retry policy; otherwise a single attempt is made.

Retry and HTTP methods
----------------------
Idempotent methods use `is_retryable` as the default predicate. POST and
PATCH are retried only when the server itself says "try again" (408, 429,
503 responses), never after a local timeout or a dropped connection, where
the server may already have applied the request. Set
`ApiConfig.retry_non_idempotent` to retry them like any other method.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, Final, Self

import httpx

from .config import ApiConfig, load_config
from .errors import (
    ApiError,
    ErrorKind,
    classify_response,
    is_auth_expired,
    is_retryable,
    malformed_response_error,
    network_error,
    timeout_error,
)
from .retry import RetryConfig, with_retry
from .token_manager import TokenManager
from .token_stores import MemoryStorage

if TYPE_CHECKING:
    from .protocols import AuthExpiredHook, RetryPredicate

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS: Final[frozenset[str]] = frozenset(
    {"GET", "HEAD", "OPTIONS", "PUT", "DELETE"}
)

_SERVER_RETRY_STATUSES: Final[frozenset[int]] = frozenset({408, 429, 503})


def is_retryable_unsafe(error: BaseException) -> bool:
    """Retry predicate for non-idempotent methods.

    Only responses in which the server declares the request unprocessed
    qualify. Locally synthesized timeouts carry status 408 too, but have
    kind TRANSPORT and are rejected.
    """
    return (
        isinstance(error, ApiError)
        and error.kind is ErrorKind.RETRYABLE
        and error.status in _SERVER_RETRY_STATUSES
    )


def default_retry_predicate(method: str, retry_non_idempotent: bool = False) -> RetryPredicate:
    if retry_non_idempotent or method.upper() in IDEMPOTENT_METHODS:
        return is_retryable
    return is_retryable_unsafe


async def _log_auth_expired(error: ApiError) -> None:
    logger.info("Authentication expired (%s); re-authentication required", error.message)


def clear_on_auth_expired(token_manager: TokenManager) -> AuthExpiredHook:
    """Auth-expiry hook that drops the stored session."""

    async def hook(error: ApiError) -> None:
        await _log_auth_expired(error)
        await token_manager.clear_tokens()

    return hook


class ApiClient:
    """Executes authenticated API calls with timeout and bounded retry.

    Usage:
        ```python
        async with ApiClient(config, token_manager) as api:
            products = await api.get("/api/products", params={"page": 1})
            order = await api.post("/api/orders", json={"items": items})
        ```

    Attributes:
        _config: Base URL, timeout and retry settings.
        _tokens: Source of the bearer token; read on every attempt.
        _http: Underlying httpx client.
        _owns_http: Whether `aclose` should close `_http`.
        _on_auth_expired: Coroutine run when a response signals expiry.
        _sleep: Sleep used between retries (injectable for tests).
    """

    def __init__(
        self,
        config: ApiConfig,
        token_manager: TokenManager,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        on_auth_expired: AuthExpiredHook | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._tokens = token_manager
        self._owns_http = http_client is None
        # Timeouts are enforced per attempt by `_attempt`, not by httpx.
        self._http = http_client or httpx.AsyncClient(transport=transport, timeout=None)
        self._on_auth_expired = on_auth_expired or _log_auth_expired
        self._sleep = sleep

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    @property
    def config(self) -> ApiConfig:
        return self._config

    @property
    def token_manager(self) -> TokenManager:
        return self._tokens

    def environment_info(self) -> dict[str, Any]:
        """Describe where this client talks to and how it holds auth state."""
        hybrid = bool(getattr(self._tokens, "has_host_bridge", False))
        return {
            "platform": "hybrid" if hybrid else "web",
            "base_url": self._config.base_url,
            "host_bridge": hybrid,
        }

    # ------------------------------------------------------------------
    # Request execution
    # ------------------------------------------------------------------

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        body: str | bytes | None = None,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        enable_retry: bool = True,
        timeout_ms: float | None = None,
        retry_condition: RetryPredicate | None = None,
    ) -> Any:
        """Perform one logical API call.

        Args:
            path: Path appended to the configured base URL.
            method: HTTP method.
            body: Pre-serialized request body.
            json: Object to serialize as the JSON body (ignored if `body`).
            params: Query parameters; None values are dropped.
            headers: Extra headers; they override the defaults.
            enable_retry: Run inside the retry scheduler.
            timeout_ms: Per-attempt timeout; defaults to the config value.
            retry_condition: Overrides the default retry predicate.

        Returns:
            The parsed JSON body, or None for an empty 2xx response.

        Raises:
            ApiError: On any HTTP, transport or timeout failure.
        """
        method = method.upper()
        timeout_s = (timeout_ms if timeout_ms is not None else self._config.timeout_ms) / 1000
        content = body if body is not None else _encode_json(json)
        query = {k: v for k, v in (params or {}).items() if v is not None}

        async def attempt() -> Any:
            return await self._attempt(method, path, content, query, headers, timeout_s)

        if not enable_retry:
            return await attempt()

        policy = RetryConfig(
            max_retries=self._config.retry_attempts,
            base_delay_ms=self._config.retry_delay_ms,
            max_delay_ms=self._config.max_retry_delay_ms,
            retry_condition=retry_condition
            or default_retry_predicate(method, self._config.retry_non_idempotent),
        )
        return await with_retry(attempt, policy, sleep=self._sleep)

    async def _attempt(
        self,
        method: str,
        path: str,
        content: str | bytes | None,
        params: Mapping[str, Any],
        headers: Mapping[str, str] | None,
        timeout_s: float,
    ) -> Any:
        url = f"{self._config.base_url}{path}"
        merged = await self._build_headers(headers)

        if self._config.enable_api_logs:
            logger.debug("API request: %s %s", method, url)

        try:
            async with asyncio.timeout(timeout_s):
                response = await self._http.request(
                    method, url, content=content, params=params or None, headers=merged
                )
        except (TimeoutError, httpx.TimeoutException) as e:
            raise timeout_error() from e
        except httpx.TransportError as e:
            raise network_error(e) from e

        if self._config.enable_api_logs:
            logger.debug("API response: %s %s", response.status_code, url)

        return await self._handle_response(response)

    async def _build_headers(self, extra: Mapping[str, str] | None) -> httpx.Headers:
        merged = httpx.Headers({"Content-Type": "application/json"})

        token = await self._tokens.get_valid_token()
        if token:
            merged["Authorization"] = f"Bearer {token}"

        if extra:
            merged.update(extra)
        return merged

    async def _handle_response(self, response: httpx.Response) -> Any:
        if not response.is_success:
            error = classify_response(response, _safe_json(response))

            if is_auth_expired(error):
                try:
                    await self._on_auth_expired(error)
                except Exception as hook_error:
                    logger.warning("Auth-expiry hook failed", exc_info=True)
                    raise error from hook_error

            raise error

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise malformed_response_error(response.status_code) from e

    # ------------------------------------------------------------------
    # Convenience verbs
    # ------------------------------------------------------------------

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request(path, method="GET", **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request(path, method="POST", **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request(path, method="PUT", **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Any:
        return await self.request(path, method="PATCH", **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request(path, method="DELETE", **kwargs)


def _encode_json(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value)


def _safe_json(response: httpx.Response) -> Any:
    """Parse an error body; never raises. Unparsable bodies become ``{}``."""
    try:
        return response.json()
    except ValueError:
        return {}


def create_client(
    config: ApiConfig | None = None,
    token_manager: TokenManager | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ApiClient:
    """Build the application's client.

    Call once at startup and pass the result to every call-site. Auth
    expiry reported by the backend clears the token manager's state.
    """
    cfg = config or load_config()
    tokens = token_manager or TokenManager(MemoryStorage())
    return ApiClient(
        cfg,
        tokens,
        transport=transport,
        on_auth_expired=clear_on_auth_expired(tokens),
    )
