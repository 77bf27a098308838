"""
Cached lookups of JWT secrets and consumers.
"""

from typing import Any, Awaitable, Callable, Optional, TYPE_CHECKING

from shared.logging import get_logger
from .exceptions import BackingStoreError
from .models import ConsumerRecord, SecretRecord

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.credential_store import CredentialStore
    from ..caching.single_flight import SingleFlightCache


class _CachedResolver:
    namespace = ""

    def __init__(self, store: "CredentialStore", cache: "SingleFlightCache"):
        self.store = store
        self.cache = cache
        self.logger = get_logger(f"jwt_auth.resolver.{self.namespace}")

    def cache_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def _resolve(self, key: str, load: Callable[[str], Awaitable[Any]]) -> Any:
        try:
            return await self.cache.get(self.cache_key(key), self._load, load, key)
        except BackingStoreError:
            raise
        except Exception as exc:
            raise BackingStoreError(str(exc)) from exc

    async def _load(self, load: Callable[[str], Awaitable[Any]], key: str) -> Any:
        self.logger.debug("Loading from backing store", namespace=self.namespace)
        return await load(key)

    def invalidate(self, key: str) -> bool:
        return self.cache.invalidate(self.cache_key(key))


class CredentialResolver(_CachedResolver):
    """Resolves a secret lookup key (read from an unverified token) to its record."""

    namespace = "jwt_secrets"

    async def resolve(self, secret_key: Any) -> Optional[SecretRecord]:
        return await self._resolve(str(secret_key), self.store.find_secret_by_key)


class ConsumerResolver(_CachedResolver):
    """Resolves a consumer id to its record."""

    namespace = "consumers"

    async def resolve(self, consumer_id: str) -> Optional[ConsumerRecord]:
        return await self._resolve(str(consumer_id), self.store.find_consumer)
