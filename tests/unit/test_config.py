"""Tests for centralized configuration module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from gateway_control.config import (
    AppConfig,
    AuthConfig,
    EmailConfig,
    FeatureFlags,
    LoggingConfig,
    QueueConfig,
    get_config,
    reset_config,
    set_config,
)


class TestAuthConfig:
    """Test AuthConfig model."""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            config = AuthConfig()

        assert config.master_api_key is None
        assert config.session_ttl_seconds == 7 * 24 * 60 * 60
        assert config.verification_token_ttl_seconds == 24 * 60 * 60
        assert config.password_reset_ttl_seconds == 60 * 60
        assert config.trial_days == 4
        assert config.api_secret_prefix == "gw_"

    def test_from_env(self):
        env = {"AUTHENTICATION_API_KEY": "master", "JWT_SECRET": "signing-secret"}
        with patch.dict(os.environ, env, clear=True):
            config = AuthConfig()

        assert config.master_api_key == "master"
        assert config.session_secret == "signing-secret"

    def test_empty_master_key_means_unset(self):
        with patch.dict(os.environ, {"AUTHENTICATION_API_KEY": ""}, clear=True):
            assert AuthConfig().master_api_key is None

    def test_missing_session_secret_is_generated_once(self):
        config = AuthConfig(session_secret=None)

        first = config.resolve_session_secret()

        assert len(first) == 64
        assert config.resolve_session_secret() == first

    def test_configured_session_secret_is_kept(self):
        assert AuthConfig(session_secret="fixed").resolve_session_secret() == "fixed"

    def test_bcrypt_cost_bounds(self):
        with pytest.raises(PydanticValidationError):
            AuthConfig(password_hash_rounds=3)


class TestFeatureFlags:
    """Test FeatureFlags model."""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            flags = FeatureFlags()

        assert flags.persist_instance_data is False
        assert flags.enable_logs_queue is False
        assert flags.enable_audit_queue is False

    @pytest.mark.parametrize("value,expected", [("true", True), ("1", True), ("no", False)])
    def test_flag_parsing(self, value, expected):
        with patch.dict(os.environ, {"DATABASE_SAVE_DATA_INSTANCE": value}, clear=True):
            assert FeatureFlags().persist_instance_data is expected


class TestOtherSections:
    """Test queue, logging and email configuration."""

    def test_queue_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = QueueConfig()

        assert config.connection_string == ""
        assert config.logs_queue_name == "logs-queue"
        assert config.audit_queue_name == "audit-queue"

    def test_log_level_is_validated(self):
        assert LoggingConfig(level="debug").level == "DEBUG"
        with pytest.raises(PydanticValidationError):
            LoggingConfig(level="LOUD")

    def test_email_app_url_is_normalized(self):
        with patch.dict(os.environ, {"SERVER_URL": "https://console.example.com/"}, clear=True):
            assert EmailConfig().app_url == "https://console.example.com"


class TestGlobalConfig:
    """Test the global accessors."""

    def test_set_get_reset(self):
        custom = AppConfig(environment="staging")
        set_config(custom)
        try:
            assert get_config() is custom
        finally:
            reset_config()

        assert get_config() is not custom
        reset_config()
