"""
Serving Module
"""
from .credentials import (
    CredentialStore,
    InMemoryCredentialStore,
    RedisCredentialStore,
    close_credential_store,
    get_credential_store,
    init_credential_store,
    parse_service_account_key,
    validate_service_account_key,
)

__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "RedisCredentialStore",
    "close_credential_store",
    "get_credential_store",
    "init_credential_store",
    "parse_service_account_key",
    "validate_service_account_key",
]
