"""Unverified JWT payload decoding.

The client never verifies signatures; it only reads the payload to learn
when the access token expires, so it can avoid sending a token the backend
will reject anyway. Signature checks stay on the server.

Decoding follows the compact serialization: three ``.``-separated
base64url segments, of which only the middle one is read. The base64 step
is a strategy chosen once when the decoder is built:

- `native_b64decode`: PyJWT's ``base64url_decode`` behind a strict
  alphabet check (default)
- `table_b64decode`: a self-contained byte-table decoder, for hosts where
  the native codec is unavailable or untrusted

Every failure (segment count, base64, UTF-8, JSON, non-object payload)
surfaces as a single `TokenDecodeError`.
"""

from __future__ import annotations

import binascii
import json
import math
import re
from collections.abc import Callable
from typing import Any, Final

from jwt.utils import base64url_decode

from .errors import TokenDecodeError

type Base64Decoder = Callable[[str], bytes]

_ALPHABET: Final[str] = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
)
_DECODE_TABLE: Final[dict[str, int]] = {c: i for i, c in enumerate(_ALPHABET)}
_PAD: Final[str] = "="
_STRICT_B64: Final[re.Pattern[str]] = re.compile(r"[A-Za-z0-9+/]*={0,2}")


def native_b64decode(data: str) -> bytes:
    """Decode standard-alphabet, padded base64 with PyJWT's codec.

    The codec silently skips characters outside its alphabet, so the input
    is checked first. Invalid input raises ValueError, like the table
    decoder.
    """
    if len(data) % 4 or not _STRICT_B64.fullmatch(data):
        raise ValueError("invalid base64 input")
    return base64url_decode(data.replace("+", "-").replace("/", "_"))


def table_b64decode(data: str) -> bytes:
    """Decode standard-alphabet, padded base64 without any codec library.

    Strict: characters outside the alphabet, a length that is not a
    multiple of 4, or misplaced padding raise ValueError.
    """
    if len(data) % 4:
        raise ValueError("base64 input length must be a multiple of 4")

    out = bytearray()
    for start in range(0, len(data), 4):
        quad = data[start : start + 4]
        pad = len(quad) - len(quad.rstrip(_PAD))
        if pad > 2 or (pad and start + 4 != len(data)):
            raise ValueError("misplaced base64 padding")

        bits = 0
        for ch in quad[: 4 - pad]:
            value = _DECODE_TABLE.get(ch)
            if value is None:
                raise ValueError(f"invalid base64 character {ch!r}")
            bits = (bits << 6) | value
        bits <<= 6 * pad

        chunk = bits.to_bytes(3, "big")
        out += chunk[: 3 - pad]

    return bytes(out)


def select_decoder(prefer_native: bool = True) -> Base64Decoder:
    """Pick the base64 strategy. Call once and keep the result."""
    return native_b64decode if prefer_native else table_b64decode


def to_padded_base64(segment: str) -> str:
    """Translate base64url to standard base64 and pad to a multiple of 4."""
    b64 = segment.replace("-", "+").replace("_", "/")
    remainder = len(b64) % 4
    if remainder:
        b64 += _PAD * (4 - remainder)
    return b64


class JWTPayloadDecoder:
    """Reads the payload of a compact JWT without verifying it.

    Attributes:
        _b64decode: Base64 strategy fixed at construction.
    """

    def __init__(self, b64decode: Base64Decoder | None = None) -> None:
        self._b64decode = b64decode or select_decoder()

    def decode(self, token: str) -> dict[str, Any]:
        """Return the payload as a dict.

        Raises:
            TokenDecodeError: For any structural, encoding or JSON failure.
        """
        if not isinstance(token, str):
            raise TokenDecodeError("Token must be a string")

        parts = token.split(".")
        if len(parts) != 3:
            raise TokenDecodeError("Invalid JWT: expected 3 segments")

        segment = parts[1]
        if not segment:
            raise TokenDecodeError("Invalid JWT: empty payload segment")

        try:
            raw = self._b64decode(to_padded_base64(segment))
            payload = json.loads(raw.decode("utf-8"))
        except (binascii.Error, ValueError) as e:
            # binascii.Error, UnicodeDecodeError and JSONDecodeError all
            # derive from ValueError.
            raise TokenDecodeError(f"Invalid JWT payload: {e}") from e

        if not isinstance(payload, dict):
            raise TokenDecodeError("Invalid JWT payload: not a JSON object")

        return payload

    def exp_seconds(self, token: str) -> float:
        """The ``exp`` claim in epoch seconds.

        Raises:
            TokenDecodeError: If the token does not decode or ``exp`` is
                missing or not a finite number.
        """
        exp = self.decode(token).get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise TokenDecodeError("Invalid JWT payload: missing numeric 'exp'")
        if not math.isfinite(exp):
            raise TokenDecodeError("Invalid JWT payload: non-finite 'exp'")
        return exp

    def expiry_ms(self, token: str) -> int | None:
        """Expiry as epoch milliseconds, or None if it cannot be read."""
        try:
            return int(self.exp_seconds(token) * 1000)
        except TokenDecodeError:
            return None
