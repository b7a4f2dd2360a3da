"""
Exception classes for Pacifica Python SDK

Every error raised by the SDK derives from PacificaError and carries a
``kind`` discriminator. Retry decisions are made by matching on ``kind``
(see transport.resilience) rather than on the concrete class.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorKind(str, Enum):
    """Discriminator for every error the SDK can surface"""
    NETWORK = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT_ERROR"
    RATE_LIMIT = "RATE_LIMIT_ERROR"
    API = "API_ERROR"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    VALIDATION = "VALIDATION_ERROR"
    INVALID_KEY_FORMAT = "INVALID_KEY_FORMAT"
    SIGNING = "SIGNING_ERROR"
    ENCODING = "ENCODING_ERROR"
    UNKNOWN = "UNKNOWN_ERROR"


class PacificaError(Exception):
    """Base exception for all Pacifica SDK errors"""

    default_kind = ErrorKind.UNKNOWN

    def __init__(self, message: str, kind: Optional[ErrorKind] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.details = details or {}

    @property
    def error_code(self) -> str:
        return self.kind.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.name}, message={self.message!r})"


class NetworkError(PacificaError):
    """Exception raised for transport-level failures (connection refused, DNS, reset)"""
    default_kind = ErrorKind.NETWORK


class RequestTimeoutError(PacificaError, TimeoutError):
    """Exception raised when a request exceeds its deadline"""
    default_kind = ErrorKind.TIMEOUT

    def __init__(self, message: str, timeout: Optional[float] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.timeout = timeout


class RateLimitError(PacificaError):
    """Exception raised when the venue answers HTTP 429"""
    default_kind = ErrorKind.RATE_LIMIT

    def __init__(self, message: str, retry_after: Optional[float] = None,
                 response_data: Any = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.status = 429
        self.retry_after = retry_after
        self.response_data = response_data


class APIError(PacificaError):
    """Exception raised for non-success HTTP responses"""
    default_kind = ErrorKind.API

    def __init__(self, message: str, status: int = 0, response_data: Any = None,
                 kind: Optional[ErrorKind] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, kind=kind, details=details)
        self.status = status
        self.response_data = response_data


class AuthenticationError(APIError):
    """Exception raised when the venue rejects the request credentials (401/403)"""
    default_kind = ErrorKind.AUTHENTICATION


class ValidationError(PacificaError):
    """Exception raised for malformed caller-supplied data"""
    default_kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.field = field


class InvalidKeyFormatError(PacificaError):
    """Exception raised when private key material cannot be decoded"""
    default_kind = ErrorKind.INVALID_KEY_FORMAT


class SigningError(PacificaError):
    """Exception raised when producing a signature fails"""
    default_kind = ErrorKind.SIGNING


class EncodingError(PacificaError):
    """Exception raised when a value has no canonical JSON rendering"""
    default_kind = ErrorKind.ENCODING
