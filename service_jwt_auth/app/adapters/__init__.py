"""
Backing store adapters for the JWT auth service.
"""

from .credential_store import CredentialStore, InMemoryCredentialStore
from .postgres_store import PostgresCredentialStore

__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "PostgresCredentialStore",
]
