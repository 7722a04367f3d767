"""
Tests for configuration and startup wiring.
"""

import pytest

from gatehouse.api.server import create_app
from gatehouse.config import ConfigurationError, Settings
from gatehouse.core.audit import BufferedSink, DirectSink
from gatehouse.core.container import build_dependencies


def make_settings(**overrides) -> Settings:
    values = {"ENVIRONMENT": "test", "JWT_SIGNATURE": "x" * 40, "DB_BACKEND": "memory"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestValidateRequired:
    """Test suite for fail-fast configuration checks."""

    def test_complete_settings_pass(self):
        make_settings().validate_required()

    def test_missing_signature(self):
        with pytest.raises(ConfigurationError, match="JWT_SIGNATURE"):
            make_settings(JWT_SIGNATURE=None).validate_required()

    def test_supabase_needs_credentials(self):
        with pytest.raises(ConfigurationError, match="SUPABASE_URL"):
            make_settings(DB_BACKEND="supabase").validate_required()

    def test_couchdb_needs_credentials(self):
        with pytest.raises(ConfigurationError, match="COUCHDB_USER"):
            make_settings(DB_BACKEND="couchdb").validate_required()

    def test_unknown_backend_and_sink(self):
        with pytest.raises(ConfigurationError):
            make_settings(DB_BACKEND="sqlite").validate_required()
        with pytest.raises(ConfigurationError):
            make_settings(AUDIT_SINK="kafka").validate_required()

    def test_app_refuses_to_start_without_signature(self):
        with pytest.raises(ConfigurationError):
            create_app(make_settings(JWT_SIGNATURE=None))


class TestSettings:
    """Test suite for computed settings."""

    def test_defaults(self):
        settings = make_settings()

        assert settings.PORT == 3000
        assert settings.ACCESS_TOKEN_TTL_SECONDS == 900
        assert settings.REFRESH_TOKEN_TTL_SECONDS == 3600
        assert settings.BCRYPT_ROUNDS == 10
        assert settings.DB_CONNECT_MAX_ATTEMPTS == 5

    def test_allowed_origins(self):
        settings = make_settings(ENVIRONMENT="production", CORS_ORIGINS="https://a.example, https://b.example,")

        assert settings.allowed_origins == ["https://a.example", "https://b.example"]
        assert make_settings(ENVIRONMENT="production").allowed_origins == []


class TestBuildDependencies:
    """Test suite for wiring the services."""

    def test_sink_follows_settings(self):
        assert isinstance(build_dependencies(make_settings()).audit.sink, DirectSink)
        assert isinstance(build_dependencies(make_settings(AUDIT_SINK="buffered")).audit.sink, BufferedSink)

    def test_bcrypt_rounds_follow_settings(self):
        deps = build_dependencies(make_settings(BCRYPT_ROUNDS=5))

        assert deps.hasher.rounds == 5

    async def test_start_and_stop(self):
        deps = build_dependencies(make_settings(AUDIT_SINK="buffered"))

        await deps.start()
        deps.audit.info("USERS", "during startup test")
        await deps.stop()

        [entry] = await deps.audit_store.list_all()
        assert entry["message"] == "during startup test"
