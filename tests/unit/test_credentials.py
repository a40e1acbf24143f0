"""
Unit Tests - Credential Store and Key Validation
"""
import json
from unittest.mock import AsyncMock

import pytest

from trafficflow.exceptions import ConfigurationError
from trafficflow.serving.credentials import (
    InMemoryCredentialStore,
    RedisCredentialStore,
    parse_service_account_key,
    validate_service_account_key,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestKeyValidation:
    """Tests for service-account key parsing"""

    def test_valid_key(self, service_account_key):
        parsed = parse_service_account_key(json.dumps(service_account_key).encode())

        assert parsed["project_id"] == "demo-project"

    def test_invalid_json(self):
        with pytest.raises(ConfigurationError, match="Invalid JSON file"):
            parse_service_account_key(b"{not json")

    def test_not_an_object(self):
        with pytest.raises(ConfigurationError, match="Invalid Service Account Key format"):
            parse_service_account_key(b"[1, 2, 3]")

    def test_missing_fields(self, service_account_key):
        del service_account_key["private_key"]
        service_account_key["client_email"] = ""

        with pytest.raises(ConfigurationError) as exc_info:
            validate_service_account_key(service_account_key)

        assert "client_email" in str(exc_info.value)
        assert "private_key" in str(exc_info.value)


class TestInMemoryCredentialStore:
    """Tests for the process-local store"""

    async def test_store_and_fetch(self, service_account_key):
        store = InMemoryCredentialStore(ttl_seconds=60)

        token = await store.store(service_account_key)

        assert len(token) == 64
        assert await store.fetch(token) == service_account_key

    async def test_tokens_are_unique(self, service_account_key):
        store = InMemoryCredentialStore(ttl_seconds=60, token_bytes=16)

        tokens = {await store.store(service_account_key) for _ in range(20)}

        assert len(tokens) == 20
        assert all(len(token) == 32 for token in tokens)

    async def test_unknown_token(self):
        store = InMemoryCredentialStore(ttl_seconds=60)

        assert await store.fetch("missing") is None

    async def test_expiry(self, service_account_key):
        clock = FakeClock()
        store = InMemoryCredentialStore(ttl_seconds=60, clock=clock)
        token = await store.store(service_account_key)

        clock.now += 60
        assert await store.fetch(token) == service_account_key

        clock.now += 1
        assert await store.fetch(token) is None
        assert len(store) == 0

    async def test_expire(self, service_account_key):
        store = InMemoryCredentialStore(ttl_seconds=60)
        token = await store.store(service_account_key)

        assert await store.expire(token) is True
        assert await store.expire(token) is False
        assert await store.fetch(token) is None

    async def test_store_sweeps_unused_expired_tokens(self, service_account_key):
        """Test keys behind tokens that are never fetched again are dropped on the next store"""
        clock = FakeClock()
        store = InMemoryCredentialStore(ttl_seconds=60, clock=clock)
        stale = [await store.store(service_account_key) for _ in range(3)]

        clock.now += 30
        live = await store.store(service_account_key)
        assert len(store) == 4

        clock.now += 31
        fresh = await store.store(service_account_key)

        assert len(store) == 2
        assert all(await store.fetch(token) is None for token in stale)
        assert await store.fetch(live) == service_account_key
        assert await store.fetch(fresh) == service_account_key


class TestRedisCredentialStore:
    """Tests for the Redis store against a mocked client"""

    @pytest.fixture
    def redis_client(self):
        client = AsyncMock()
        client.ping.return_value = True
        return client

    async def test_store_uses_ttl_and_namespace(self, redis_client, service_account_key):
        store = RedisCredentialStore(redis_client, ttl_seconds=900, namespace="keys")

        token = await store.store(service_account_key)

        redis_client.setex.assert_awaited_once_with(f"keys:{token}", 900, json.dumps(service_account_key))

    async def test_fetch(self, redis_client, service_account_key):
        redis_client.get.return_value = json.dumps(service_account_key)
        store = RedisCredentialStore(redis_client, ttl_seconds=900)

        assert await store.fetch("abc") == service_account_key
        redis_client.get.assert_awaited_once_with("credentials:abc")

    async def test_fetch_missing(self, redis_client):
        redis_client.get.return_value = None
        store = RedisCredentialStore(redis_client, ttl_seconds=900)

        assert await store.fetch("abc") is None

    async def test_unreadable_entry_discarded(self, redis_client):
        redis_client.get.return_value = "{broken"
        store = RedisCredentialStore(redis_client, ttl_seconds=900)

        assert await store.fetch("abc") is None
        redis_client.delete.assert_awaited_once_with("credentials:abc")

    async def test_expire(self, redis_client):
        redis_client.delete.return_value = 1
        store = RedisCredentialStore(redis_client, ttl_seconds=900)

        assert await store.expire("abc") is True

    async def test_ping_and_close(self, redis_client):
        store = RedisCredentialStore(redis_client, ttl_seconds=900)

        assert await store.ping() is True
        await store.close()

        redis_client.aclose.assert_awaited_once()
