"""
Shared fixtures for JWT auth service tests.
"""

from typing import Any, Dict, List, Optional

import pytest

from service_jwt_auth.app.adapters import InMemoryCredentialStore
from service_jwt_auth.app.auth import (
    ConsumerRecord,
    ConsumerResolver,
    CredentialResolver,
    GatewayRequest,
    JwtAuthenticator,
    SecretRecord,
)
from service_jwt_auth.app.caching import SingleFlightCache
from service_jwt_auth.app.config import JwtPluginConfig
from shared.test_helpers import DEFAULT_HS256_SECRET as HS256_SECRET, MockTokenGenerator, generate_rsa_key_pair


@pytest.fixture(scope="session")
def rsa_keys():
    """RSA key pair shared across the session; generation is slow."""
    return generate_rsa_key_pair()


@pytest.fixture
def token_generator():
    return MockTokenGenerator(issuer="partner-issuer", secret=HS256_SECRET)


@pytest.fixture
def consumer():
    return ConsumerRecord(id="consumer-1", custom_id="partner-42", username="partner")


@pytest.fixture
def anonymous_consumer():
    return ConsumerRecord(id="anonymous-consumer", custom_id=None, username="anonymous")


@pytest.fixture
def hs256_secret():
    return SecretRecord(
        id="secret-1",
        key="partner-issuer",
        consumer_id="consumer-1",
        algorithm="HS256",
        secret=HS256_SECRET,
    )


@pytest.fixture
def rs256_secret(rsa_keys):
    return SecretRecord(
        id="secret-2",
        key="rsa-issuer",
        consumer_id="consumer-1",
        algorithm="RS256",
        rsa_public_key=rsa_keys.public_pem,
    )


@pytest.fixture
def store(hs256_secret, rs256_secret, consumer, anonymous_consumer):
    return InMemoryCredentialStore(
        secrets=[hs256_secret, rs256_secret],
        consumers=[consumer, anonymous_consumer],
    )


@pytest.fixture
def cache():
    return SingleFlightCache()


@pytest.fixture
def credential_resolver(store, cache):
    return CredentialResolver(store, cache)


@pytest.fixture
def consumer_resolver(store, cache):
    return ConsumerResolver(store, cache)


@pytest.fixture
def authenticator(credential_resolver, consumer_resolver):
    return JwtAuthenticator(credential_resolver, consumer_resolver)


@pytest.fixture
def make_config():
    def _make(**overrides: Any) -> JwtPluginConfig:
        return JwtPluginConfig(**overrides)
    return _make


@pytest.fixture
def make_request():
    def _make(
        method: str = "GET",
        *,
        query: Optional[Dict[str, List[str]]] = None,
        cookies: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> GatewayRequest:
        return GatewayRequest(
            method=method,
            path="/api/orders",
            query_params=query or {},
            cookies=cookies or {},
            headers={name.lower(): value for name, value in (headers or {}).items()},
            context=context or {},
        )
    return _make
