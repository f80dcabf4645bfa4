"""
Redis Operator Configuration

Central configuration for the operator process.
Override with environment variables for flexibility.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OperatorConfig:
    """Operator process configuration."""

    # Platform client
    kube_context: Optional[str] = None
    request_timeout: float = 30.0

    # Reconcile loop
    reconcile_timeout: float = 120.0
    watch_interval: int = 30
    create_namespace: bool = False

    # HTTP server (health + metrics)
    server_host: str = "0.0.0.0"
    server_port: int = 8080

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    def __post_init__(self):
        self.kube_context = os.getenv("REDIS_OPERATOR_KUBE_CONTEXT", self.kube_context)
        self.request_timeout = float(
            os.getenv("REDIS_OPERATOR_REQUEST_TIMEOUT", self.request_timeout)
        )
        self.reconcile_timeout = float(
            os.getenv("REDIS_OPERATOR_RECONCILE_TIMEOUT", self.reconcile_timeout)
        )
        self.watch_interval = int(os.getenv("REDIS_OPERATOR_WATCH_INTERVAL", self.watch_interval))
        self.create_namespace = _env_bool("REDIS_OPERATOR_CREATE_NAMESPACE", self.create_namespace)
        self.server_host = os.getenv("REDIS_OPERATOR_HOST", self.server_host)
        self.server_port = int(os.getenv("REDIS_OPERATOR_PORT", self.server_port))
        self.log_level = os.getenv("REDIS_OPERATOR_LOG_LEVEL", self.log_level).upper()
        self.log_json = _env_bool("REDIS_OPERATOR_LOG_JSON", self.log_json)

        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.watch_interval < 1:
            raise ValueError("watch_interval must be at least 1 second")


def get_config() -> OperatorConfig:
    """Get configuration with environment overrides applied."""
    return OperatorConfig()
