"""
Shared route dependencies: credential store, backend factory, token resolution.
"""

from functools import lru_cache

from fastapi import Depends

from trafficflow.exceptions import InvalidTokenError
from trafficflow.ingestion.clients import GoogleBackendFactory
from trafficflow.serving.credentials import CredentialStore, ServiceAccountKey, get_credential_store


def get_store() -> CredentialStore:
    return get_credential_store()


@lru_cache()
def get_backend_factory() -> GoogleBackendFactory:
    return GoogleBackendFactory()


async def resolve_key(token: str, store: CredentialStore) -> ServiceAccountKey:
    """Look up the key behind a token; InvalidTokenError if absent or expired"""
    key = await store.fetch(token) if token else None
    if key is None:
        raise InvalidTokenError()
    return key


async def key_from_query(token: str, store: CredentialStore = Depends(get_store)) -> ServiceAccountKey:
    """Dependency for GET endpoints taking ?token=..."""
    return await resolve_key(token, store)
