"""
Decoding and verification primitives for compact JWTs, built on python-jose.

Nothing here establishes trust on its own: ``decode_token`` only parses the
token, and the verifier decides which key and algorithm to check it with.
"""

from __future__ import annotations

import base64
import binascii
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Union

from jose import jwk, jws, jwt
from jose.exceptions import JOSEError, JWKError, JWSError
from jose.utils import base64url_decode

from .exceptions import InvalidKeyMaterialError, MalformedTokenError

SUPPORTED_ALGORITHMS = frozenset({
    "HS256",
    "RS256",
    "RS384",
    "RS512",
    "ES256",
    "ES384",
    "ES512",
})


def _must_be_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_nbf(nbf: float, now: float) -> Optional[str]:
    if nbf > now:
        return "token not valid yet"
    return None


def _check_exp(exp: float, now: float) -> Optional[str]:
    if exp <= now:
        return "token expired"
    return None


REGISTERED_CLAIMS: Dict[str, Callable[[float, float], Optional[str]]] = {
    "nbf": _check_nbf,
    "exp": _check_exp,
}


@dataclass(frozen=True)
class DecodedJwt:
    """A parsed, not yet trusted, compact JWT."""

    header: Dict[str, Any]
    claims: Dict[str, Any]
    signature: bytes
    signing_input: bytes
    token: str

    def verify_signature(self, key: Union[str, bytes], algorithm: str) -> bool:
        """
        Check the signature with ``key`` under ``algorithm``.

        Raises InvalidKeyMaterialError when ``key`` cannot be used with the
        algorithm (for example a PEM public key offered as an HMAC secret).
        """
        try:
            prepared = jwk.construct(key, algorithm)
        except JWKError as exc:
            raise InvalidKeyMaterialError(details={"error": str(exc)}) from exc

        try:
            jws.verify(self.token, prepared, algorithms=[algorithm])
        except JWKError as exc:
            raise InvalidKeyMaterialError(details={"error": str(exc)}) from exc
        except JWSError:
            return False
        return True

    def verify_registered_claims(
        self,
        claims_to_verify: Iterable[str],
        now: Optional[float] = None,
    ) -> Dict[str, str]:
        """
        Validate the named registered claims.

        Claims missing from the token are skipped. Returns a mapping of
        claim name to failure message, empty when every claim passed.
        """
        current = time.time() if now is None else now
        errors: Dict[str, str] = {}
        for claim_name in sorted(claims_to_verify):
            check = REGISTERED_CLAIMS.get(claim_name)
            if check is None or claim_name not in self.claims:
                continue
            value = self.claims[claim_name]
            if not _must_be_number(value):
                errors[claim_name] = "must be a number"
                continue
            failure = check(value, current)
            if failure:
                errors[claim_name] = failure
        return errors


def decode_token(token: str) -> DecodedJwt:
    """Parse a compact JWT without verifying it."""
    if not isinstance(token, str):
        raise MalformedTokenError("invalid JWT")

    segments = token.split(".")
    if len(segments) != 3:
        raise MalformedTokenError("invalid JWT")

    try:
        header = jwt.get_unverified_header(token)
        claims = jwt.get_unverified_claims(token)
    except JOSEError as exc:
        raise MalformedTokenError("invalid JSON") from exc

    if not isinstance(header, dict) or not isinstance(claims, dict):
        raise MalformedTokenError("invalid JSON")

    alg = header.get("alg")
    if not isinstance(alg, str) or alg not in SUPPORTED_ALGORITHMS:
        raise MalformedTokenError("invalid alg")

    try:
        signature = base64url_decode(segments[2].encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
        raise MalformedTokenError("invalid signature") from exc

    return DecodedJwt(
        header=header,
        claims=claims,
        signature=signature,
        signing_input=f"{segments[0]}.{segments[1]}".encode("ascii", errors="replace"),
        token=token,
    )


def b64_decode(value: Optional[str]) -> Optional[bytes]:
    """
    Decode base64 key material, accepting the url-safe alphabet and
    missing padding. Returns None when the value is absent or invalid.
    """
    if not value:
        return None
    candidate = value.strip().replace("-", "+").replace("_", "/")
    remainder = len(candidate) % 4
    if remainder:
        candidate += "=" * (4 - remainder)
    try:
        return base64.b64decode(candidate, validate=True)
    except (binascii.Error, ValueError):
        return None
