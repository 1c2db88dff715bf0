"""API errors and the classification rules that drive retry decisions.

This module defines the single error type that crosses the client boundary,
`ApiError`, together with pure functions that answer two independent
questions about any failure:

- Is it worth retrying? (`is_retryable`)
- Does it mean the session is gone? (`is_auth_expired`)

Every `ApiError` carries an explicit `ErrorKind` tag so call-sites can branch
on data instead of re-inspecting status codes.

None of the functions here raise; they only build and classify values.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    import httpx

TOKEN_EXPIRED_CODE: Final[str] = "TOKEN_EXPIRED"
TIMEOUT_CODE: Final[str] = "TIMEOUT"
NETWORK_ERROR_CODE: Final[str] = "NETWORK_ERROR"
INVALID_RESPONSE_CODE: Final[str] = "INVALID_RESPONSE"

_RETRYABLE_CLIENT_STATUSES: Final[frozenset[int]] = frozenset({408, 429})


class ErrorKind(enum.Enum):
    """Coarse failure category attached to every `ApiError`."""

    TRANSPORT = "transport"
    """Network unreachable, DNS failure, connection reset, local timeout."""

    CLIENT = "client"
    """4xx other than 408/429. Never retried."""

    RETRYABLE = "retryable"
    """408, 429 and 5xx: rate limited or temporarily unavailable."""

    AUTH_EXPIRED = "auth_expired"
    """401 or a backend `TOKEN_EXPIRED` code."""

    MALFORMED = "malformed"
    """A response body or token that could not be parsed."""

    UNKNOWN = "unknown"


def kind_for(status: int | None, code: str | None = None) -> ErrorKind:
    """Map a status/code pair onto an `ErrorKind`.

    Auth expiry wins over every other category so that a 401 is always
    reported as such, regardless of what else the backend sent.
    """
    if status == 401 or code == TOKEN_EXPIRED_CODE:
        return ErrorKind.AUTH_EXPIRED
    if status is None:
        return ErrorKind.TRANSPORT
    if status >= 500 or status in _RETRYABLE_CLIENT_STATUSES:
        return ErrorKind.RETRYABLE
    if 400 <= status < 500:
        return ErrorKind.CLIENT
    return ErrorKind.UNKNOWN


class ApiError(Exception):
    """Failure of a single logical API call.

    Instances are immutable once constructed. They are built either by
    `classify_http_error` from a non-2xx response, or by one of the local
    constructors (`timeout_error`, `network_error`,
    `malformed_response_error`) for failures that never produced a usable
    response.

    Attributes:
        message: Human-readable description.
        status: HTTP status code, or None for transport failures.
        code: Backend-defined machine code (e.g. ``TOKEN_EXPIRED``).
        details: Backend-supplied structured payload, passed through as-is.
        kind: Failure category derived from status/code unless given.
    """

    message: str
    status: int | None
    code: str | None
    details: Any
    kind: ErrorKind

    def __init__(
        self,
        message: str,
        status: int | None = None,
        code: str | None = None,
        details: Any = None,
        kind: ErrorKind | None = None,
    ) -> None:
        super().__init__(message)
        object.__setattr__(self, "message", message)
        object.__setattr__(self, "status", status)
        object.__setattr__(self, "code", code)
        object.__setattr__(self, "details", details)
        object.__setattr__(self, "kind", kind or kind_for(status, code))

    def __setattr__(self, name: str, value: Any) -> None:
        # Exception machinery (__cause__, __notes__, ...) still has to work.
        if name.startswith("__"):
            super().__setattr__(name, value)
            return
        raise AttributeError(f"ApiError is immutable; cannot set {name!r}")

    def __reduce__(self):
        return (
            self.__class__,
            (self.message, self.status, self.code, self.details, self.kind),
        )

    def __repr__(self) -> str:
        return (
            f"ApiError(message={self.message!r}, status={self.status!r}, "
            f"code={self.code!r}, kind={self.kind.name})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict view for structured logging."""
        return {
            "message": self.message,
            "status": self.status,
            "code": self.code,
            "details": self.details,
            "kind": self.kind.value,
        }


class TokenDecodeError(ValueError):
    """Raised when a JWT cannot be decoded into a JSON payload.

    Covers every failure step (segment count, base64url, UTF-8, JSON,
    non-object payload) as one kind. Callers that only need a yes/no answer
    should use `TokenManager.is_token_expired`, which treats this error as
    "expired".
    """


# ============================================================================
# Construction
# ============================================================================


def classify_http_error(
    status: int, reason: str | None, body: Any
) -> ApiError:
    """Build an `ApiError` from a non-2xx status and its parsed body.

    The message is the first non-empty string among ``body["error"]`` and
    ``body["message"]``, else a synthesized ``"API Error: <status> <reason>"``.
    ``code`` and ``details`` are copied from the body when present.
    """
    data = body if isinstance(body, dict) else {}

    message = next(
        (v for v in (data.get("error"), data.get("message")) if isinstance(v, str) and v),
        f"API Error: {status} {reason or ''}".rstrip(),
    )

    code = data.get("code")
    if code is not None and not isinstance(code, str):
        code = str(code)

    return ApiError(message, status, code, data.get("details"))


def classify_response(response: httpx.Response, body: Any) -> ApiError:
    """`classify_http_error` for an httpx response."""
    return classify_http_error(response.status_code, response.reason_phrase, body)


def timeout_error() -> ApiError:
    """Error synthesized when the per-attempt timer fires.

    Carries status 408 so the default retry predicate treats it like a
    server-side request timeout.
    """
    return ApiError("Request timeout", 408, TIMEOUT_CODE, kind=ErrorKind.TRANSPORT)


def network_error(exc: BaseException) -> ApiError:
    """Error synthesized for a failure below HTTP (DNS, refused, reset)."""
    text = str(exc) or exc.__class__.__name__
    return ApiError(
        f"Network error: {text}", None, NETWORK_ERROR_CODE, kind=ErrorKind.TRANSPORT
    )


def malformed_response_error(status: int) -> ApiError:
    """Error for a 2xx response whose body is not valid JSON."""
    return ApiError(
        f"Invalid JSON in response (status {status})",
        status,
        INVALID_RESPONSE_CODE,
        kind=ErrorKind.MALFORMED,
    )


# ============================================================================
# Classification
# ============================================================================


def is_retryable(error: BaseException) -> bool:
    """Decide whether a failed attempt may be retried.

    - status >= 500 -> True
    - status 408 or 429 -> True
    - any other 4xx -> False
    - `ApiError` without a status (transport failure) -> True
    - anything unclassified -> True

    The last rule fails open; stricter behaviour belongs in a caller-supplied
    predicate (see `ApiClient` for the per-method default).
    """
    if not isinstance(error, ApiError):
        return True

    status = error.status
    if status is None:
        return True
    if status >= 500 or status in _RETRYABLE_CLIENT_STATUSES:
        return True
    if 400 <= status < 500:
        return False
    return True


def is_auth_expired(error: BaseException) -> bool:
    """True iff the error is a 401 or carries the ``TOKEN_EXPIRED`` code."""
    if not isinstance(error, ApiError):
        return False
    return error.status == 401 or error.code == TOKEN_EXPIRED_CODE
