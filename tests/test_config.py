"""
Tests for redis_operator.config module
"""

import os
from unittest.mock import patch

import pytest


class TestOperatorConfig:
    """Tests for OperatorConfig class."""

    def test_default_values(self):
        """Test default configuration values."""
        from redis_operator.config import OperatorConfig

        with patch.dict(os.environ, {}, clear=True):
            config = OperatorConfig()

        assert config.request_timeout == 30.0
        assert config.reconcile_timeout == 120.0
        assert config.watch_interval == 30
        assert config.create_namespace is False
        assert config.server_port == 8080
        assert config.log_level == "INFO"
        assert config.kube_context is None

    def test_env_override(self):
        """Test environment variable overrides."""
        from redis_operator.config import OperatorConfig

        with patch.dict(os.environ, {
            "REDIS_OPERATOR_REQUEST_TIMEOUT": "5",
            "REDIS_OPERATOR_CREATE_NAMESPACE": "true",
            "REDIS_OPERATOR_LOG_LEVEL": "debug",
            "REDIS_OPERATOR_KUBE_CONTEXT": "kind-redis",
        }):
            config = OperatorConfig()

            assert config.request_timeout == 5.0
            assert config.create_namespace is True
            assert config.log_level == "DEBUG"
            assert config.kube_context == "kind-redis"
            # Non-overridden should keep defaults
            assert config.watch_interval == 30

    def test_invalid_timeout(self):
        from redis_operator.config import OperatorConfig

        with patch.dict(os.environ, {"REDIS_OPERATOR_REQUEST_TIMEOUT": "0"}):
            with pytest.raises(ValueError):
                OperatorConfig()

    def test_get_config(self):
        from redis_operator.config import OperatorConfig, get_config

        assert isinstance(get_config(), OperatorConfig)
