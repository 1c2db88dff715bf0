import base64
import json

import jwt
import pytest
from jwt.utils import base64url_encode

import resilient_client as m
from resilient_client import jwt_payload

DECODERS = [
    pytest.param(m.JWTPayloadDecoder(m.select_decoder(prefer_native=True)), id="native"),
    pytest.param(m.JWTPayloadDecoder(m.select_decoder(prefer_native=False)), id="table"),
]


def _token_with_payload_segment(segment: str) -> str:
    return f"eyJhbGciOiJIUzI1NiJ9.{segment}.c2ln"


@pytest.mark.parametrize("decoder", DECODERS)
@pytest.mark.parametrize(
    "payload",
    [
        {"sub": "u1", "exp": 1700000000},
        {"sub": "ü-ñ-日本", "roles": ["a", "b"], "nested": {"x": [1, 2, None]}},
        {"a": "x" * 257},  # lengths that need one and two padding chars
        {"ab": "y" * 3},
    ],
)
def test_decodes_what_pyjwt_encodes(decoder, payload):
    token = jwt.encode(payload, "a-sufficiently-long-test-secret-0123456789", algorithm="HS256")
    assert decoder.decode(token) == payload


@pytest.mark.parametrize("decoder", DECODERS)
@pytest.mark.parametrize(
    "token",
    [
        "only.two",
        "a.b.c.d",
        "",
        "header..sig",
        _token_with_payload_segment("!!!!"),
        _token_with_payload_segment(base64url_encode(b"not json").decode()),
        _token_with_payload_segment("eyJl!*eHAiOjE3OTI0Mzk5MDl9"),
        _token_with_payload_segment("eyJleHAiOjE3OTI0Mzk5MDl9 "),
        _token_with_payload_segment(base64url_encode(b"[1, 2]").decode()),
        _token_with_payload_segment(base64url_encode(b"\xff\xfe").decode()),
    ],
    ids=["two-segments", "four-segments", "empty", "empty-payload", "bad-base64",
         "embedded-bad-char", "trailing-space",
         "not-json", "not-object", "not-utf8"],
)
def test_malformed_tokens_raise_decode_error(decoder, token):
    with pytest.raises(m.TokenDecodeError):
        decoder.decode(token)


def test_table_decoder_matches_stdlib():
    for raw in [b"", b"f", b"fo", b"foo", b"foob", b"fooba", b"foobar", bytes(range(256))]:
        encoded = base64.b64encode(raw).decode()
        assert jwt_payload.table_b64decode(encoded) == raw


@pytest.mark.parametrize("b64decode", [jwt_payload.native_b64decode, jwt_payload.table_b64decode])
@pytest.mark.parametrize("bad", ["abc", "ab$=", "a===", "ab==cd==", "eyJl!*eH", "ab-_"])
def test_base64_decoders_are_strict(b64decode, bad):
    with pytest.raises(ValueError):
        b64decode(bad)


@pytest.mark.parametrize("b64decode", [jwt_payload.native_b64decode, jwt_payload.table_b64decode])
def test_base64_decoders_agree_with_stdlib(b64decode):
    raw = bytes(range(256))
    assert b64decode(base64.b64encode(raw).decode()) == raw


def test_to_padded_base64():
    assert jwt_payload.to_padded_base64("ab-_") == "ab+/"
    assert jwt_payload.to_padded_base64("abcde") == "abcde==="
    assert jwt_payload.to_padded_base64("abcdef") == "abcdef=="


def test_expiry_ms():
    decoder = m.JWTPayloadDecoder()
    token = _token_with_payload_segment(base64url_encode(json.dumps({"exp": 1700000000}).encode()).decode())
    assert decoder.expiry_ms(token) == 1700000000 * 1000
    assert decoder.expiry_ms("garbage") is None


@pytest.mark.parametrize("exp", [None, "1700000000", True])
def test_non_numeric_exp_is_rejected(exp):
    decoder = m.JWTPayloadDecoder()
    body = {} if exp is None else {"exp": exp}
    token = _token_with_payload_segment(base64url_encode(json.dumps(body).encode()).decode())
    with pytest.raises(m.TokenDecodeError):
        decoder.exp_seconds(token)
