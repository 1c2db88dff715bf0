"""User-facing messages for API failures.

Maps a backend error code (or, failing that, an HTTP status) onto a
title/message/action triple that a UI can display. The lookup is pure: it
does not look at network state and triggers nothing. Acting on the
suggestion (redirecting to login, clearing state) is the caller's job.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True, slots=True)
class ErrorMessage:
    """Displayable description of a failure.

    Attributes:
        title: Short headline.
        message: One or two sentences for the user.
        action: Suggested next step, used as a button label.
    """

    title: str
    message: str
    action: str


UNKNOWN_ERROR: Final[str] = "UNKNOWN_ERROR"

ERROR_MESSAGES: Final[Mapping[str, ErrorMessage]] = {
    # Authentication
    "USER_ALREADY_EXISTS": ErrorMessage(
        "Account already exists",
        "This email address is already registered. Try logging in.",
        "Log in",
    ),
    "USER_NOT_FOUND": ErrorMessage(
        "Account not found",
        "This email address is not registered. Please sign up.",
        "Sign up",
    ),
    "INVALID_CREDENTIALS": ErrorMessage(
        "Login details are incorrect",
        "The email or password is wrong. Please check and try again.",
        "Try again",
    ),
    "TOKEN_EXPIRED": ErrorMessage(
        "Session expired",
        "Your session has expired. Please log in again.",
        "Log in",
    ),
    "TOKEN_INVALID": ErrorMessage(
        "Invalid credentials",
        "There is a problem with your login. Please log in again.",
        "Log in",
    ),
    "ACCESS_DENIED": ErrorMessage(
        "Access denied",
        "You do not have permission to use this feature.",
        "OK",
    ),
    "PERMISSION_DENIED": ErrorMessage(
        "Permission denied",
        "You are not allowed to perform this action.",
        "OK",
    ),
    "ACCOUNT_SUSPENDED": ErrorMessage(
        "Account suspended",
        "This account has been suspended. Please contact support.",
        "Contact support",
    ),
    # Validation
    "VALIDATION_ERROR": ErrorMessage(
        "Please check your input",
        "Some of the information you entered is invalid. Please check it.",
        "Edit",
    ),
    "CONFLICT": ErrorMessage(
        "Conflicting request",
        "The resource was changed or already exists. Refresh and try again.",
        "Refresh",
    ),
    "NOT_FOUND": ErrorMessage(
        "Not found",
        "The requested item does not exist or has been removed.",
        "Go back",
    ),
    "FILE_TOO_LARGE": ErrorMessage(
        "File too large",
        "The file exceeds the maximum upload size.",
        "Choose another file",
    ),
    "INVALID_FILE_TYPE": ErrorMessage(
        "Unsupported file type",
        "Only the allowed file formats can be uploaded.",
        "Choose another file",
    ),
    # Server / network
    "NETWORK_ERROR": ErrorMessage(
        "Network error",
        "Check your internet connection and try again.",
        "Retry",
    ),
    "SERVER_ERROR": ErrorMessage(
        "Server error",
        "A temporary server error occurred. Please try again shortly.",
        "Retry",
    ),
    "TIMEOUT": ErrorMessage(
        "Request timed out",
        "The server is slow to respond. Please try again.",
        "Retry",
    ),
    "RATE_LIMITED": ErrorMessage(
        "Too many requests",
        "Please wait a moment and try again.",
        "OK",
    ),
    "SERVICE_UNAVAILABLE": ErrorMessage(
        "Service unavailable",
        "The service is under maintenance. Please try again shortly.",
        "OK",
    ),
    "INVALID_RESPONSE": ErrorMessage(
        "Unexpected response",
        "The server sent a response that could not be read. Please try again.",
        "Retry",
    ),
    UNKNOWN_ERROR: ErrorMessage(
        "Something went wrong",
        "An unexpected error occurred. Please contact support.",
        "Contact support",
    ),
}

STATUS_CODES: Final[Mapping[int, str]] = {
    400: "VALIDATION_ERROR",
    401: "TOKEN_INVALID",
    403: "ACCESS_DENIED",
    404: "NOT_FOUND",
    408: "TIMEOUT",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMITED",
    500: "SERVER_ERROR",
    502: "SERVICE_UNAVAILABLE",
    503: "SERVICE_UNAVAILABLE",
    504: "TIMEOUT",
}


def get_error_message(code: str, fallback: str | None = None) -> ErrorMessage:
    """Look up a message by backend code.

    Unmapped codes get a generic entry whose body is `fallback` when given,
    otherwise the ``UNKNOWN_ERROR`` text.
    """
    found = ERROR_MESSAGES.get(code)
    if found is not None:
        return found

    unknown = ERROR_MESSAGES[UNKNOWN_ERROR]
    return ErrorMessage(
        title="An error occurred",
        message=fallback or unknown.message,
        action="OK",
    )


def get_error_message_for_status(status: int) -> ErrorMessage:
    return ERROR_MESSAGES[STATUS_CODES.get(status, UNKNOWN_ERROR)]


def to_user_message(error: BaseException) -> ErrorMessage:
    """Resolve the message for any exception raised by the client.

    Resolution order: the error's code when it has an explicit mapping, then
    its HTTP status, then ``UNKNOWN_ERROR``.
    """
    code = getattr(error, "code", None)
    if isinstance(code, str) and code in ERROR_MESSAGES:
        return ERROR_MESSAGES[code]

    status = getattr(error, "status", None)
    if isinstance(status, int) and status in STATUS_CODES:
        return get_error_message_for_status(status)

    return ERROR_MESSAGES[UNKNOWN_ERROR]
