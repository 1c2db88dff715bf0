"""Client configuration.

The core consumes four inputs: base URL, timeout, retry count and base retry
delay. Defaults come from a per-environment table; individual values can be
overridden through environment variables, which are also read from a
``.env`` file via python-dotenv.

Environment variables
---------------------
- ``RESILIENT_CLIENT_ENV`` / ``APP_ENV`` / ``NODE_ENV``: environment name
- ``API_BASE_URL``: backend base URL
- ``API_TIMEOUT_MS``: per-attempt timeout in milliseconds
- ``API_RETRY_ATTEMPTS``: retries after the first attempt
- ``API_RETRY_DELAY_MS``: base backoff delay in milliseconds
"""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

from dotenv import load_dotenv

DEFAULT_ENVIRONMENT: Final[str] = "development"

_ENV_NAME_VARS: Final[tuple[str, ...]] = ("RESILIENT_CLIENT_ENV", "APP_ENV", "NODE_ENV")


@dataclass(frozen=True, slots=True)
class ApiConfig:
    """Settings for one `ApiClient`.

    Attributes:
        base_url: Prefix for every request path.
        timeout_ms: Per-attempt timeout.
        retry_attempts: Retries after the first attempt.
        retry_delay_ms: Base backoff delay, doubled per retry.
        max_retry_delay_ms: Cap on the exponential part of the delay.
        enable_api_logs: Log each request and response at DEBUG level.
        retry_non_idempotent: Retry POST/PATCH on any retryable error, not
            only on server-declared "try again" statuses.
    """

    base_url: str
    timeout_ms: int = 15000
    retry_attempts: int = 3
    retry_delay_ms: int = 1000
    max_retry_delay_ms: int = 10000
    enable_api_logs: bool = False
    retry_non_idempotent: bool = False

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.retry_attempts < 0:
            raise ValueError(f"retry_attempts must be >= 0, got {self.retry_attempts}")
        if self.retry_delay_ms < 0:
            raise ValueError(f"retry_delay_ms must be >= 0, got {self.retry_delay_ms}")


ENVIRONMENTS: Final[Mapping[str, ApiConfig]] = {
    "development": ApiConfig(
        base_url="http://localhost:5000",
        timeout_ms=10000,
        retry_attempts=3,
        retry_delay_ms=1000,
        enable_api_logs=True,
    ),
    "production": ApiConfig(
        base_url="https://api.example.com",
        timeout_ms=15000,
        retry_attempts=5,
        retry_delay_ms=2000,
    ),
}


def get_current_environment(environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    for var in _ENV_NAME_VARS:
        value = env.get(var)
        if value:
            return value
    return DEFAULT_ENVIRONMENT


def _int_from_env(environ: Mapping[str, str], name: str) -> int | None:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_config(
    environment: str | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    dotenv: bool = True,
) -> ApiConfig:
    """Resolve the configuration for the current environment.

    Args:
        environment: Environment name; detected from the process
            environment when None. Unknown names fall back to development.
        environ: Variables to read instead of ``os.environ``.
        dotenv: Load a ``.env`` file into ``os.environ`` first.

    Raises:
        ValueError: If a numeric override is not an integer.
    """
    if dotenv and environ is None:
        load_dotenv()
    env = os.environ if environ is None else environ

    name = environment or get_current_environment(env)
    base = ENVIRONMENTS.get(name, ENVIRONMENTS[DEFAULT_ENVIRONMENT])

    overrides: dict[str, object] = {}
    if env.get("API_BASE_URL"):
        overrides["base_url"] = env["API_BASE_URL"]
    for var, field in (
        ("API_TIMEOUT_MS", "timeout_ms"),
        ("API_RETRY_ATTEMPTS", "retry_attempts"),
        ("API_RETRY_DELAY_MS", "retry_delay_ms"),
    ):
        value = _int_from_env(env, var)
        if value is not None:
            overrides[field] = value

    return dataclasses.replace(base, **overrides)


def configure_logging(level: int | str = logging.INFO) -> None:
    """Send the package's log records to stderr. For applications and demos."""
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    package_logger = logging.getLogger("resilient_client")
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
