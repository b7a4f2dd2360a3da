"""
HTTP and WebSocket transports for Pacifica Python SDK
"""

from .resilience import (
    OutcomeKind,
    ResilienceOutcome,
    RetryPolicy,
    classify_status,
)
from .http import HttpTransport, parse_retry_after
from .websocket import (
    WebSocketClient,
    ConnectionState,
    EventType,
    TYPED_EVENTS,
)

__all__ = [
    'OutcomeKind',
    'ResilienceOutcome',
    'RetryPolicy',
    'classify_status',
    'HttpTransport',
    'parse_retry_after',
    'WebSocketClient',
    'ConnectionState',
    'EventType',
    'TYPED_EVENTS',
]
