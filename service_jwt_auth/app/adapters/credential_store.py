"""
Backing store interface for JWT secrets and consumers, plus an in-memory store.
"""

from typing import Dict, Iterable, Optional, Protocol

from shared.logging import get_logger
from ..auth.models import ConsumerRecord, SecretRecord


class CredentialStore(Protocol):
    """Lookups the auth filter needs from persistent storage."""

    async def find_secret_by_key(self, key: str) -> Optional[SecretRecord]:
        ...

    async def find_consumer(self, consumer_id: str) -> Optional[ConsumerRecord]:
        ...


class InMemoryCredentialStore:
    """Dictionary-backed store for local runs and tests."""

    def __init__(
        self,
        secrets: Iterable[SecretRecord] = (),
        consumers: Iterable[ConsumerRecord] = (),
    ):
        self.logger = get_logger("jwt_auth.store.memory")
        self._secrets: Dict[str, SecretRecord] = {}
        self._consumers: Dict[str, ConsumerRecord] = {}
        for secret in secrets:
            self.add_secret(secret)
        for consumer in consumers:
            self.add_consumer(consumer)

    def add_secret(self, secret: SecretRecord) -> None:
        self._secrets[secret.key] = secret

    def add_consumer(self, consumer: ConsumerRecord) -> None:
        self._consumers[consumer.id] = consumer

    def remove_secret(self, key: str) -> None:
        self._secrets.pop(key, None)

    async def find_secret_by_key(self, key: str) -> Optional[SecretRecord]:
        return self._secrets.get(key)

    async def find_consumer(self, consumer_id: str) -> Optional[ConsumerRecord]:
        return self._consumers.get(consumer_id)

    async def check_health(self) -> str:
        return "ok"

    @classmethod
    def from_mapping(cls, data: Dict) -> "InMemoryCredentialStore":
        """
        Build a store from a ``{"consumers": [...], "jwt_secrets": [...]}``
        mapping, as found in the seed section of a routes file.
        """
        consumers = [
            ConsumerRecord(
                id=str(item["id"]),
                custom_id=item.get("custom_id"),
                username=item.get("username"),
            )
            for item in data.get("consumers", [])
        ]
        secrets = [
            SecretRecord(
                key=str(item["key"]),
                consumer_id=str(item["consumer_id"]),
                algorithm=item.get("algorithm") or "HS256",
                secret=item.get("secret"),
                rsa_public_key=item.get("rsa_public_key"),
                id=item.get("id"),
            )
            for item in data.get("jwt_secrets", [])
        ]
        return cls(secrets=secrets, consumers=consumers)
