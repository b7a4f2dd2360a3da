"""
Configuration for Pacifica Python SDK

PacificaConfig holds every tunable of the SDK as plain data: endpoints,
timeouts, retry and reconnect behaviour, signing defaults and log level.
It can be built directly or loaded from a dict, JSON, a file or the
environment.
"""

import json
import os
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlparse

from ..exceptions import ValidationError
from ..version import __version__

DEFAULT_BASE_URL = "https://api.pacifica.fi/api/v1"
DEFAULT_WS_URL = "wss://api.pacifica.fi/ws"
API_PATH = "/api/v1"

# Levels accepted for log_level, "silent" disables SDK logging
LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR,
    'silent': logging.CRITICAL + 10,
}

_BOOL_TRUE = {'1', 'true', 'yes', 'on'}
_BOOL_FALSE = {'0', 'false', 'no', 'off'}


def normalize_base_url(base_url: str) -> str:
    """Strip trailing slashes and make sure the URL ends with ``/api/v1``."""
    url = base_url.strip().rstrip('/')
    if not url.endswith(API_PATH):
        url += API_PATH
    return url


def configure_logging(level: Optional[str]) -> None:
    """
    Set the level of the ``pacifica_sdk`` logger.

    Args:
        level: One of debug, info, warn, error or silent; None leaves the
            logger untouched
    """
    if level is None:
        return
    name = level.lower()
    if name not in LOG_LEVELS:
        raise ValidationError(
            f"Invalid log level: {level}. Expected one of {', '.join(sorted(LOG_LEVELS))}",
            field='log_level'
        )
    logging.getLogger('pacifica_sdk').setLevel(LOG_LEVELS[name])


@dataclass
class WebSocketConfig:
    """Settings for the streaming connection."""
    url: str = DEFAULT_WS_URL
    reconnect: bool = True
    reconnect_interval: float = 5.0
    max_reconnect_attempts: int = 10
    max_reconnect_delay: float = 60.0
    open_timeout: float = 10.0
    ping_interval: Optional[float] = 20.0
    builder_code: Optional[str] = None

    def __post_init__(self):
        """Validate streaming configuration."""
        parsed = urlparse(self.url or '')
        if parsed.scheme not in ('ws', 'wss') or not parsed.netloc:
            raise ValidationError(f"Invalid WebSocket URL format: {self.url}", field='ws_url')
        if self.reconnect_interval < 0:
            raise ValidationError("Reconnect interval must be non-negative", field='ws_reconnect_interval')
        if self.max_reconnect_attempts < 0:
            raise ValidationError("Max reconnect attempts must be non-negative",
                                  field='ws_max_reconnect_attempts')
        if self.max_reconnect_delay < 0:
            raise ValidationError("Max reconnect delay must be non-negative", field='ws_max_reconnect_delay')
        if self.open_timeout <= 0:
            raise ValidationError("Open timeout must be positive", field='ws_open_timeout')


@dataclass
class PacificaConfig:
    """
    Configuration for the Pacifica REST and WebSocket clients.

    Durations are in seconds except ``expiry_window``, which is passed to
    the venue verbatim in milliseconds.
    """
    base_url: str = DEFAULT_BASE_URL
    ws_url: str = DEFAULT_WS_URL
    timeout: float = 30.0
    retry_attempts: int = 3
    retry_delay: float = 1.0
    max_retry_delay: Optional[float] = None
    retry_jitter: float = 0.0
    verify_ssl: bool = True
    user_agent: str = f"Pacifica-Python-SDK/{__version__}"
    expiry_window: Optional[int] = 5000
    account_public_key: Optional[str] = None
    agent_wallet_public_key: Optional[str] = None
    builder_code: Optional[str] = None
    ws_reconnect: bool = True
    ws_reconnect_interval: float = 5.0
    ws_max_reconnect_attempts: int = 10
    ws_max_reconnect_delay: float = 60.0
    ws_open_timeout: float = 10.0
    log_level: Optional[str] = None

    def __post_init__(self):
        """Validate configuration and normalize URLs."""
        if not self.base_url:
            raise ValidationError("Base URL cannot be empty", field='base_url')

        self.base_url = normalize_base_url(self.base_url)
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValidationError(f"Invalid base URL format: {self.base_url}", field='base_url')

        if self.timeout <= 0:
            raise ValidationError("Timeout must be positive", field='timeout')

        if self.retry_attempts < 0:
            raise ValidationError("Retry attempts must be non-negative", field='retry_attempts')

        if self.retry_delay < 0:
            raise ValidationError("Retry delay must be non-negative", field='retry_delay')

        if self.max_retry_delay is not None and self.max_retry_delay < 0:
            raise ValidationError("Max retry delay must be non-negative", field='max_retry_delay')

        if not 0.0 <= self.retry_jitter <= 1.0:
            raise ValidationError("Retry jitter must be between 0 and 1", field='retry_jitter')

        if self.expiry_window is not None and (
            isinstance(self.expiry_window, bool) or not isinstance(self.expiry_window, int)
            or self.expiry_window <= 0
        ):
            raise ValidationError("Expiry window must be a positive integer", field='expiry_window')

        if self.log_level is not None and self.log_level.lower() not in LOG_LEVELS:
            raise ValidationError(f"Invalid log level: {self.log_level}", field='log_level')

        # Validates the streaming fields as well
        self.websocket_config()

    def websocket_config(self) -> WebSocketConfig:
        return WebSocketConfig(
            url=self.ws_url,
            reconnect=self.ws_reconnect,
            reconnect_interval=self.ws_reconnect_interval,
            max_reconnect_attempts=self.ws_max_reconnect_attempts,
            max_reconnect_delay=self.ws_max_reconnect_delay,
            open_timeout=self.ws_open_timeout,
            builder_code=self.builder_code,
        )

    def apply_logging(self) -> None:
        configure_logging(self.log_level)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PacificaConfig':
        """
        Build a configuration from a mapping.

        Raises:
            ValidationError: On unknown keys or invalid values
        """
        if not isinstance(data, Mapping):
            raise ValidationError("Configuration must be a JSON object")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                details={'unknown_keys': unknown}
            )
        return cls(**dict(data))

    @classmethod
    def from_json(cls, json_string: str) -> 'PacificaConfig':
        try:
            data = json.loads(json_string)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Failed to parse configuration JSON: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> 'PacificaConfig':
        try:
            content = Path(file_path).read_text(encoding='utf-8')
        except OSError as e:
            raise ValidationError(f"Failed to read configuration file: {e}") from e
        return cls.from_json(content)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 prefix: str = "PACIFICA_", **overrides: Any) -> 'PacificaConfig':
        """
        Build a configuration from environment variables.

        Each field maps to ``PACIFICA_<FIELD>`` (e.g. ``PACIFICA_BASE_URL``).
        ``BUILDER_CODE`` is honoured when ``PACIFICA_BUILDER_CODE`` is unset.
        Keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        for f in fields(cls):
            raw = env.get(f"{prefix}{f.name.upper()}")
            if raw is None and f.name == 'builder_code':
                raw = env.get('BUILDER_CODE')
            if raw is None or raw == '':
                continue
            values[f.name] = _coerce(f.name, raw, f.default)

        values.update(overrides)
        return cls(**values)


def _coerce(name: str, raw: str, default: Any) -> Any:
    """Convert an environment string to the type of the field default."""
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in _BOOL_TRUE:
            return True
        if lowered in _BOOL_FALSE:
            return False
        raise ValidationError(f"Invalid boolean for {name}: {raw}", field=name)

    try:
        if isinstance(default, int) or name in ('expiry_window',):
            return int(raw)
        if isinstance(default, float) or name in ('max_retry_delay',):
            return float(raw)
    except ValueError as e:
        raise ValidationError(f"Invalid number for {name}: {raw}", field=name) from e
    return raw
