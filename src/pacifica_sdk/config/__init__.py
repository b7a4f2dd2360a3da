"""
Configuration management for Pacifica Python SDK
"""

from .settings import (
    PacificaConfig,
    WebSocketConfig,
    DEFAULT_BASE_URL,
    DEFAULT_WS_URL,
    LOG_LEVELS,
    configure_logging,
    normalize_base_url,
)

__all__ = [
    'PacificaConfig',
    'WebSocketConfig',
    'DEFAULT_BASE_URL',
    'DEFAULT_WS_URL',
    'LOG_LEVELS',
    'configure_logging',
    'normalize_base_url',
]
