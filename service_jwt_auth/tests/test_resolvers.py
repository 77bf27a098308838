"""
Unit tests for the cached secret and consumer resolvers.
"""

from unittest.mock import AsyncMock

import pytest

from service_jwt_auth.app.auth import BackingStoreError, ConsumerResolver, CredentialResolver
from service_jwt_auth.app.caching import SingleFlightCache


class TestCredentialResolver:
    """Test cases for CredentialResolver."""

    @pytest.mark.asyncio
    async def test_resolves_and_caches(self, hs256_secret):
        store = AsyncMock()
        store.find_secret_by_key.return_value = hs256_secret
        resolver = CredentialResolver(store, SingleFlightCache())

        assert await resolver.resolve("partner-issuer") == hs256_secret
        assert await resolver.resolve("partner-issuer") == hs256_secret

        store.find_secret_by_key.assert_awaited_once_with("partner-issuer")

    @pytest.mark.asyncio
    async def test_non_string_key_is_stringified(self, hs256_secret):
        store = AsyncMock()
        store.find_secret_by_key.return_value = None
        resolver = CredentialResolver(store, SingleFlightCache())

        assert await resolver.resolve(12345) is None

        store.find_secret_by_key.assert_awaited_once_with("12345")

    @pytest.mark.asyncio
    async def test_not_found_is_remembered(self):
        store = AsyncMock()
        store.find_secret_by_key.return_value = None
        resolver = CredentialResolver(store, SingleFlightCache())

        await resolver.resolve("unknown")
        await resolver.resolve("unknown")

        assert store.find_secret_by_key.await_count == 1

    @pytest.mark.asyncio
    async def test_store_failure_becomes_backing_store_error(self):
        store = AsyncMock()
        store.find_secret_by_key.side_effect = ConnectionError("connection refused")
        resolver = CredentialResolver(store, SingleFlightCache())

        with pytest.raises(BackingStoreError) as exc_info:
            await resolver.resolve("partner-issuer")

        assert exc_info.value.status_code == 500
        assert exc_info.value.cause == "connection refused"

    @pytest.mark.asyncio
    async def test_backing_store_error_passes_through(self):
        store = AsyncMock()
        original = BackingStoreError("pool closed")
        store.find_secret_by_key.side_effect = original
        resolver = CredentialResolver(store, SingleFlightCache())

        with pytest.raises(BackingStoreError) as exc_info:
            await resolver.resolve("partner-issuer")

        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_invalidate(self, hs256_secret):
        store = AsyncMock()
        store.find_secret_by_key.return_value = hs256_secret
        resolver = CredentialResolver(store, SingleFlightCache())
        await resolver.resolve("partner-issuer")

        assert resolver.invalidate("partner-issuer") is True
        await resolver.resolve("partner-issuer")

        assert store.find_secret_by_key.await_count == 2


class TestConsumerResolver:
    """Test cases for ConsumerResolver."""

    @pytest.mark.asyncio
    async def test_resolves_consumer(self, store, consumer):
        resolver = ConsumerResolver(store, SingleFlightCache())

        assert await resolver.resolve("consumer-1") == consumer
        assert await resolver.resolve("nobody") is None

    @pytest.mark.asyncio
    async def test_namespaces_do_not_collide(self, hs256_secret, consumer):
        store = AsyncMock()
        store.find_secret_by_key.return_value = hs256_secret
        store.find_consumer.return_value = consumer
        cache = SingleFlightCache()

        await CredentialResolver(store, cache).resolve("same-id")
        resolved = await ConsumerResolver(store, cache).resolve("same-id")

        assert resolved == consumer
        assert len(cache) == 2
