"""
Unit tests for JWT decoding and verification primitives.
"""

import base64
import json
import time

import pytest

from service_jwt_auth.app.auth.exceptions import InvalidKeyMaterialError, MalformedTokenError
from service_jwt_auth.app.auth.jwt_parser import b64_decode, decode_token
from shared.test_helpers import DEFAULT_HS256_SECRET as HS256_SECRET, tamper_signature


def _segment(data) -> str:
    raw = json.dumps(data).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


class TestDecodeToken:
    """Test cases for decode_token."""

    def test_decodes_header_and_claims(self, token_generator):
        token = token_generator.generate_hs256_token({"sub": "user-7"})

        decoded = decode_token(token)

        assert decoded.header["alg"] == "HS256"
        assert decoded.claims["sub"] == "user-7"
        assert decoded.claims["iss"] == "partner-issuer"
        assert decoded.token == token
        assert decoded.signing_input == token.rsplit(".", 1)[0].encode("ascii")
        assert len(decoded.signature) == 32

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d"])
    def test_wrong_segment_count(self, token):
        with pytest.raises(MalformedTokenError) as exc_info:
            decode_token(token)

        assert exc_info.value.message == "Bad token; invalid JWT"
        assert exc_info.value.status_code == 401

    def test_invalid_json(self):
        with pytest.raises(MalformedTokenError) as exc_info:
            decode_token("bm90IGpzb24.bm90IGpzb24.c2ln")

        assert exc_info.value.message == "Bad token; invalid JSON"

    def test_claims_must_be_an_object(self):
        token = f"{_segment({'alg': 'HS256'})}.{_segment([1, 2])}.c2ln"

        with pytest.raises(MalformedTokenError):
            decode_token(token)

    @pytest.mark.parametrize("alg", [None, "none", "HS999", 256])
    def test_unsupported_alg(self, alg):
        header = {"typ": "JWT"}
        if alg is not None:
            header["alg"] = alg
        token = f"{_segment(header)}.{_segment({'iss': 'x'})}.c2ln"

        with pytest.raises(MalformedTokenError) as exc_info:
            decode_token(token)

        assert exc_info.value.message == "Bad token; invalid alg"


class TestVerifySignature:
    """Test cases for DecodedJwt.verify_signature."""

    def test_hs256_valid(self, token_generator):
        decoded = decode_token(token_generator.generate_hs256_token())

        assert decoded.verify_signature(HS256_SECRET, "HS256") is True

    def test_hs256_wrong_secret(self, token_generator):
        decoded = decode_token(token_generator.generate_hs256_token())

        assert decoded.verify_signature("another-secret-0123456789abcdefghij", "HS256") is False

    def test_hs256_tampered_signature(self, token_generator):
        decoded = decode_token(tamper_signature(token_generator.generate_hs256_token()))

        assert decoded.verify_signature(HS256_SECRET, "HS256") is False

    def test_rs256_valid(self, token_generator, rsa_keys):
        decoded = decode_token(token_generator.generate_rs256_token(rsa_keys.private_pem))

        assert decoded.verify_signature(rsa_keys.public_pem, "RS256") is True

    def test_public_key_rejected_as_hmac_secret(self, token_generator, rsa_keys):
        decoded = decode_token(token_generator.generate_hs256_token())

        with pytest.raises(InvalidKeyMaterialError):
            decoded.verify_signature(rsa_keys.public_pem, "HS256")

    def test_garbage_rsa_key(self, token_generator, rsa_keys):
        decoded = decode_token(token_generator.generate_rs256_token(rsa_keys.private_pem))

        with pytest.raises(InvalidKeyMaterialError):
            decoded.verify_signature("not a pem key", "RS256")


class TestVerifyRegisteredClaims:
    """Test cases for DecodedJwt.verify_registered_claims."""

    def test_valid_claims(self, token_generator):
        now = int(time.time())
        decoded = decode_token(token_generator.generate_hs256_token({"nbf": now - 10}))

        assert decoded.verify_registered_claims({"exp", "nbf"}, now=now) == {}

    def test_expired_and_not_yet_valid(self, token_generator):
        now = 1_700_000_000
        decoded = decode_token(token_generator.generate_hs256_token(
            {"exp": now, "nbf": now + 60},
            expires_in=None,
        ))

        errors = decoded.verify_registered_claims({"exp", "nbf"}, now=now)

        assert errors == {"exp": "token expired", "nbf": "token not valid yet"}

    def test_non_numeric_claim(self, token_generator):
        decoded = decode_token(token_generator.generate_hs256_token({"exp": "tomorrow"}, expires_in=None))

        assert decoded.verify_registered_claims({"exp"}) == {"exp": "must be a number"}

    def test_unlisted_claims_not_checked(self, token_generator):
        decoded = decode_token(token_generator.generate_hs256_token({"exp": 1}, expires_in=None))

        assert decoded.verify_registered_claims(set()) == {}

    def test_absent_claim_is_skipped(self, token_generator):
        decoded = decode_token(token_generator.generate_hs256_token(expires_in=None))

        assert decoded.verify_registered_claims({"exp", "nbf"}) == {}


class TestB64Decode:
    """Test cases for b64_decode."""

    def test_standard_alphabet(self):
        assert b64_decode(base64.b64encode(b"\xfb\xff secret").decode()) == b"\xfb\xff secret"

    def test_url_safe_without_padding(self):
        encoded = base64.urlsafe_b64encode(b"\xfb\xff secret").decode().rstrip("=")

        assert b64_decode(encoded) == b"\xfb\xff secret"

    @pytest.mark.parametrize("value", [None, "", "!!!not base64!!!"])
    def test_invalid(self, value):
        assert b64_decode(value) is None
