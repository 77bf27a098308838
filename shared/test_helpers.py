"""
Test helper functions and factory methods for the JWT gateway auth service.
"""

import base64
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


@dataclass
class TestKeyPair:
    """PEM-encoded RSA key pair."""
    __test__ = False

    private_pem: str
    public_pem: str


DEFAULT_HS256_SECRET = "mock-secret-0123456789abcdefghijklmnop"


class MockTokenGenerator:
    """Mints signed JWTs the way an upstream issuer would."""
    __test__ = False

    def __init__(self, issuer: str = "partner-issuer", secret: str = DEFAULT_HS256_SECRET):
        self.issuer = issuer
        self.secret = secret

    def generate_hs256_token(
        self,
        claims: Optional[Dict[str, Any]] = None,
        *,
        expires_in: Optional[int] = 3600,
        secret: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ) -> str:
        payload = self._payload(claims, expires_in)
        return jwt.encode(payload, secret or self.secret, algorithm="HS256", headers=headers)

    def generate_rs256_token(
        self,
        private_pem: str,
        claims: Optional[Dict[str, Any]] = None,
        *,
        expires_in: Optional[int] = 3600,
        headers: Optional[Dict[str, Any]] = None,
    ) -> str:
        payload = self._payload(claims, expires_in)
        return jwt.encode(payload, private_pem, algorithm="RS256", headers=headers)

    def _payload(self, claims: Optional[Dict[str, Any]], expires_in: Optional[int]) -> Dict[str, Any]:
        now = int(time.time())
        payload: Dict[str, Any] = {"iss": self.issuer, "sub": "user-1", "iat": now}
        if expires_in is not None:
            payload["exp"] = now + expires_in
        payload.update(claims or {})
        return {key: value for key, value in payload.items() if value is not None}


def generate_rsa_key_pair(key_size: int = 2048) -> TestKeyPair:
    """Generate a fresh RSA key pair for signing test tokens."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")
    return TestKeyPair(private_pem=private_pem, public_pem=public_pem)


def b64encode_secret(secret: str) -> str:
    return base64.b64encode(secret.encode("utf-8")).decode("ascii")


def tamper_signature(token: str) -> str:
    """Return ``token`` with a corrupted signature segment."""
    header, payload, signature = token.split(".")
    replacement = "A" if signature[0] != "A" else "B"
    return f"{header}.{payload}.{replacement}{signature[1:]}"
