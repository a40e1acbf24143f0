"""
Credential Store

Holds uploaded service-account keys for a limited time behind opaque tokens:
- store(key) -> token
- fetch(token) -> key, or None once expired/unknown
- expire(token)

Two backends: an in-process store (single worker, default) and a Redis
store (TTL managed by Redis, shared across workers).
"""

import json
import secrets
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple, Union

import structlog
from redis.asyncio import ConnectionPool, Redis

from trafficflow.config import get_settings
from trafficflow.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

REQUIRED_KEY_FIELDS = ("project_id", "client_email", "private_key")

ServiceAccountKey = Dict[str, Any]


def validate_service_account_key(key: Any) -> ServiceAccountKey:
    """
    Check that a parsed key looks like a service-account key.

    Raises:
        ConfigurationError: not an object or a required field is missing
    """
    if not isinstance(key, dict):
        raise ConfigurationError("Invalid Service Account Key format")

    missing = [name for name in REQUIRED_KEY_FIELDS if not key.get(name)]
    if missing:
        raise ConfigurationError(f"Invalid Service Account Key format: missing {', '.join(missing)}")
    return key


def parse_service_account_key(content: Union[bytes, str]) -> ServiceAccountKey:
    """Parse and validate an uploaded JSON key file"""
    try:
        key = json.loads(content)
    except (TypeError, ValueError) as e:
        raise ConfigurationError("Invalid JSON file") from e
    return validate_service_account_key(key)


class CredentialStore(ABC):
    """Token -> service-account key mapping with expiry"""

    def __init__(self, ttl_seconds: int, token_bytes: int = 32):
        self.ttl_seconds = ttl_seconds
        self.token_bytes = token_bytes

    def new_token(self) -> str:
        return secrets.token_hex(self.token_bytes)

    @abstractmethod
    async def store(self, key: ServiceAccountKey) -> str:
        """Store a key and return the token referencing it"""

    @abstractmethod
    async def fetch(self, token: str) -> Optional[ServiceAccountKey]:
        """Return the key for a live token, None if unknown or expired"""

    @abstractmethod
    async def expire(self, token: str) -> bool:
        """Drop a token; True if it existed"""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class InMemoryCredentialStore(CredentialStore):
    """
    Process-local store.

    Expired entries are removed on lookup and swept on every store, so keys
    behind tokens that are never used again do not stay in memory.
    """

    def __init__(
        self,
        ttl_seconds: int,
        token_bytes: int = 32,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(ttl_seconds, token_bytes)
        self._clock = clock
        self._entries: Dict[str, Tuple[ServiceAccountKey, float]] = {}

    def _sweep(self, now: float) -> None:
        expired = [token for token, (_, expires_at) in self._entries.items() if now > expires_at]
        for token in expired:
            del self._entries[token]

    async def store(self, key: ServiceAccountKey) -> str:
        now = self._clock()
        self._sweep(now)
        token = self.new_token()
        self._entries[token] = (key, now + self.ttl_seconds)
        return token

    async def fetch(self, token: str) -> Optional[ServiceAccountKey]:
        entry = self._entries.get(token)
        if entry is None:
            return None

        key, expires_at = entry
        if self._clock() > expires_at:
            del self._entries[token]
            return None
        return key

    async def expire(self, token: str) -> bool:
        return self._entries.pop(token, None) is not None

    def __len__(self) -> int:
        return len(self._entries)


class RedisCredentialStore(CredentialStore):
    """
    Redis-backed store; keys are JSON values under "<namespace>:<token>".

    Example:
        store = RedisCredentialStore(redis, ttl_seconds=3600)
        token = await store.store(key)
    """

    def __init__(
        self,
        client: Redis,
        ttl_seconds: int,
        token_bytes: int = 32,
        namespace: str = "credentials",
        pool: Optional[ConnectionPool] = None,
    ):
        super().__init__(ttl_seconds, token_bytes)
        self.client = client
        self.namespace = namespace
        self._pool = pool

    def _key(self, token: str) -> str:
        """Generate namespaced key"""
        return f"{self.namespace}:{token}"

    async def store(self, key: ServiceAccountKey) -> str:
        token = self.new_token()
        await self.client.setex(self._key(token), self.ttl_seconds, json.dumps(key))
        return token

    async def fetch(self, token: str) -> Optional[ServiceAccountKey]:
        value = await self.client.get(self._key(token))
        if value is None:
            return None

        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable credential entry")
            await self.client.delete(self._key(token))
            return None

    async def expire(self, token: str) -> bool:
        return await self.client.delete(self._key(token)) > 0

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()


# Process-wide store, created at application startup
_store: Optional[CredentialStore] = None


async def init_credential_store() -> CredentialStore:
    """Create the configured credential store"""
    global _store

    if _store is not None:
        return _store

    settings = get_settings()
    options = settings.credentials

    if options.backend == "redis":
        pool = ConnectionPool.from_url(
            settings.redis.get_url(),
            max_connections=settings.redis.max_connections,
            socket_timeout=settings.redis.socket_timeout,
            decode_responses=settings.redis.decode_responses,
        )
        client = Redis(connection_pool=pool)
        try:
            await client.ping()
            logger.info("Redis credential store connected")
        except Exception as e:
            logger.error(f"Redis connection failed: {e}")
            raise
        _store = RedisCredentialStore(
            client,
            ttl_seconds=options.token_ttl_seconds,
            token_bytes=options.token_bytes,
            namespace=options.namespace,
            pool=pool,
        )
    else:
        _store = InMemoryCredentialStore(
            ttl_seconds=options.token_ttl_seconds,
            token_bytes=options.token_bytes,
        )
        logger.info("In-memory credential store initialized")

    return _store


async def close_credential_store() -> None:
    """Close the credential store"""
    global _store

    if _store is not None:
        await _store.close()
        _store = None
        logger.info("Credential store closed")


def get_credential_store() -> CredentialStore:
    """Get the credential store instance"""
    if _store is None:
        raise RuntimeError("Credential store not initialized. Call init_credential_store() first.")
    return _store
