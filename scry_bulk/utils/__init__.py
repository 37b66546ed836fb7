"""Utilities package initialization."""
from .config import (
    GlobalSettings,
    ServiceConfiguration,
    ensure_runtime_configuration,
    get_service_configuration,
    get_settings,
    load_yaml_config,
)
from .logging import log_ingestion_run, setup_logger
from .retry import RetryConfig, execute_with_retry, retry_operation

__all__ = [
    "GlobalSettings",
    "RetryConfig",
    "ServiceConfiguration",
    "ensure_runtime_configuration",
    "execute_with_retry",
    "get_service_configuration",
    "get_settings",
    "load_yaml_config",
    "log_ingestion_run",
    "retry_operation",
    "setup_logger",
]
