"""
Unit Tests - Configuration
"""
import pytest
import structlog
from pydantic import ValidationError

from trafficflow.config import Settings
from trafficflow.config.logging import bind_property_context, redact_credentials
from trafficflow.config.settings import CredentialSettings, RedisSettings


class TestSettings:
    """Tests for application settings"""

    def test_defaults(self, test_settings):
        assert test_settings.app_env == "testing"
        assert not test_settings.is_production
        assert test_settings.google.query_row_limit == 100
        assert test_settings.google.details_limit == 20
        assert test_settings.google.top_products == 10
        assert test_settings.google.product_row_limit == 10000
        assert test_settings.credentials.token_ttl_seconds == 3600

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            Settings(app_env="moon")

    def test_credential_backend_normalized(self):
        assert CredentialSettings(backend="Redis").backend == "redis"

    def test_invalid_credential_backend(self):
        with pytest.raises(ValidationError):
            CredentialSettings(backend="sqlite")

    def test_redis_url(self):
        settings = RedisSettings(host="cache", port=6380, db=2)

        assert settings.get_url() == "redis://cache:6380/2"


class TestLogging:
    """Tests for the structlog processors and request context"""

    @pytest.fixture(autouse=True)
    def clean_context(self):
        structlog.contextvars.clear_contextvars()
        yield
        structlog.contextvars.clear_contextvars()

    def test_credentials_redacted(self, service_account_key):
        event = redact_credentials(
            None,
            "info",
            {"event": "Key stored", "private_key": service_account_key["private_key"], "token": "abc", "project_id": "demo-project"},
        )

        assert event == {"event": "Key stored", "private_key": "***", "token": "***", "project_id": "demo-project"}

    def test_missing_values_left_alone(self):
        assert redact_credentials(None, "info", {"event": "x", "token": None}) == {"event": "x", "token": None}

    def test_property_context_bound(self):
        bind_property_context("123456", "analytics_123456")

        assert structlog.contextvars.get_contextvars() == {"property_id": "123456", "dataset_id": "analytics_123456"}

    def test_property_context_without_dataset(self):
        bind_property_context("123456")

        assert structlog.contextvars.get_contextvars() == {"property_id": "123456"}
