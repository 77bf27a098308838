"""
JWT authentication filter for the gateway.
"""

from .authenticator import JwtAuthenticator, RequestFilter
from .exceptions import BackingStoreError, JwtAuthError
from .models import (
    AnonymousFallback,
    Authenticated,
    AuthOutcome,
    ConsumerRecord,
    GatewayRequest,
    Rejected,
    SecretRecord,
    Skipped,
)
from .resolvers import ConsumerResolver, CredentialResolver
from .verifier import JwtVerifier

__all__ = [
    "AnonymousFallback",
    "AuthOutcome",
    "Authenticated",
    "BackingStoreError",
    "ConsumerRecord",
    "ConsumerResolver",
    "CredentialResolver",
    "GatewayRequest",
    "JwtAuthError",
    "JwtAuthenticator",
    "JwtVerifier",
    "Rejected",
    "RequestFilter",
    "SecretRecord",
    "Skipped",
]
