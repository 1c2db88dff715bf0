"""
Resilient authenticated API client core.

High-level flow (per call)
--------------------------
1. A call-site runs `ApiClient.request(path, method=..., json=...)`.
2. `TokenManager.get_valid_token()` returns the stored access token unless
   its JWT ``exp`` has passed (expired or undecodable tokens are cleared).
3. The request is sent with ``Authorization: Bearer <token>`` under a
   per-attempt timeout.
4. Failures become `ApiError` values tagged with an `ErrorKind`.
5. `with_retry` retries retryable failures with exponential backoff plus
   jitter, up to ``retry_attempts + 1`` attempts in total.
6. The final error reaches the call-site; a 401 or ``TOKEN_EXPIRED`` also
   runs the auth-expiry hook, which clears the session by default.

Embedded in a native shell, use `HybridTokenManager`: it prefers the
shell's session (reached through an injected bridge) over local storage and
keeps both in sync.

Example usage
-------------

.. code-block:: python

    from resilient_client import (
        HybridTokenManager,
        LocalStorage,
        TokenInfo,
        create_client,
        detect_host_bridge,
        load_config,
        to_user_message,
        ApiError,
    )

    tokens = HybridTokenManager(
        LocalStorage(storage),
        bridge=detect_host_bridge(host_globals),
    )
    await tokens.initialize_from_native()

    api = create_client(load_config(), tokens)

    auth = await api.post("/api/auth/login", json=credentials, enable_retry=False)
    await tokens.set_token_info(TokenInfo.from_response(auth))

    try:
        cart = await api.get("/api/cart")
    except ApiError as e:
        show(to_user_message(e))
"""

# Client
from .client import (
    ApiClient,
    clear_on_auth_expired,
    create_client,
    default_retry_predicate,
    is_retryable_unsafe,
)

# Config
from .config import ApiConfig, configure_logging, get_current_environment, load_config

# Errors
from .errors import (
    ApiError,
    ErrorKind,
    TokenDecodeError,
    classify_http_error,
    is_auth_expired,
    is_retryable,
)

# Hybrid token manager
from .hybrid import (
    HostBridgeAbsent,
    HostBridgeAvailable,
    HybridTokenManager,
    detect_host_bridge,
)

# JWT payload decoding
from .jwt_payload import JWTPayloadDecoder, select_decoder

# Messages
from .messages import ErrorMessage, get_error_message, to_user_message

# Protocols
from .protocols import HostBridge, NativeStorageBackend, TokenStore, User

# Retry
from .retry import RetryConfig, with_retry

# Token manager
from .token_manager import TokenInfo, TokenManager

# Token stores
from .token_stores import LocalStorage, MemoryStorage, NativeStorage, RedisStorage

__all__ = [
    # Errors
    "ApiError",
    "ErrorKind",
    "TokenDecodeError",
    "classify_http_error",
    "is_auth_expired",
    "is_retryable",
    # Messages
    "ErrorMessage",
    "get_error_message",
    "to_user_message",
    # Protocols
    "HostBridge",
    "NativeStorageBackend",
    "TokenStore",
    "User",
    # Retry
    "RetryConfig",
    "with_retry",
    # Token stores
    "LocalStorage",
    "MemoryStorage",
    "NativeStorage",
    "RedisStorage",
    # JWT payload decoding
    "JWTPayloadDecoder",
    "select_decoder",
    # Token manager
    "TokenInfo",
    "TokenManager",
    # Hybrid token manager
    "HostBridgeAbsent",
    "HostBridgeAvailable",
    "HybridTokenManager",
    "detect_host_bridge",
    # Config
    "ApiConfig",
    "configure_logging",
    "get_current_environment",
    "load_config",
    # Client
    "ApiClient",
    "clear_on_auth_expired",
    "create_client",
    "default_retry_predicate",
    "is_retryable_unsafe",
]
