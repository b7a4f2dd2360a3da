"""
HTTP transport for the Pacifica REST API

Every request goes through one retry loop:

    Attempt(n) -> Success
               -> Retry(delay) -> sleep -> Attempt(n + 1)
               -> Fatal -> raise

Each attempt maps its outcome onto the SDK error taxonomy and the shared
RetryPolicy decides whether to try again. The last classified error is
raised unchanged once the policy says stop.
"""

import time
import logging
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from ..config.settings import API_PATH, PacificaConfig
from ..exceptions import (
    APIError,
    AuthenticationError,
    NetworkError,
    PacificaError,
    RateLimitError,
    RequestTimeoutError,
)
from .resilience import RetryPolicy

logger = logging.getLogger(__name__)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse a Retry-After header into seconds.

    Accepts delta-seconds or an HTTP date; returns None when absent or
    unparseable.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def _error_message(data: Any, response: requests.Response) -> str:
    if isinstance(data, dict):
        error = data.get('error')
        if isinstance(error, dict) and error.get('message'):
            return str(error['message'])
        if isinstance(error, str) and error:
            return error
        if data.get('message'):
            return str(data['message'])
    return f"HTTP {response.status_code}: {response.reason}"


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return value


class HttpTransport:
    """
    Synchronous HTTP transport with bounded, classified retry.

    Args:
        config: SDK configuration (base URL, timeout, retry settings)
        session: Preconfigured ``requests.Session``
        policy: Retry policy, built from ``config`` when omitted
        sleep: Replacement for ``time.sleep``
        logger: Logger to use instead of the module logger
    """

    def __init__(self, config: Optional[PacificaConfig] = None,
                 session: Optional[requests.Session] = None,
                 policy: Optional[RetryPolicy] = None,
                 sleep: Optional[Callable[[float], None]] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config or PacificaConfig()
        self.policy = policy or RetryPolicy(
            max_retries=self.config.retry_attempts,
            base_delay=self.config.retry_delay,
            max_delay=self.config.max_retry_delay,
            jitter=self.config.retry_jitter,
        )
        self.session = session or self._create_session()
        self.sleep = sleep or time.sleep
        self.logger = logger or logging.getLogger(__name__)

        self.logger.debug(f"Initialized HTTP transport for {self.config.base_url}")

    def _create_session(self) -> requests.Session:
        """Create HTTP session with default headers."""
        session = requests.Session()
        session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'User-Agent': self.config.user_agent,
        })
        return session

    def build_url(self, endpoint: str) -> str:
        path = endpoint if endpoint.startswith('/') else f'/{endpoint}'
        # Endpoints are relative to the versioned base URL
        if path.startswith(API_PATH + '/'):
            path = path[len(API_PATH):]
        return f"{self.config.base_url}{path}"

    def get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None,
            headers: Optional[Mapping[str, str]] = None) -> Any:
        return self.request('GET', endpoint, params=params, headers=headers)

    def post(self, endpoint: str, body: Any = None,
             headers: Optional[Mapping[str, str]] = None) -> Any:
        return self.request('POST', endpoint, body=body, headers=headers)

    def request(self, method: str, endpoint: str, params: Optional[Mapping[str, Any]] = None,
                body: Any = None, headers: Optional[Mapping[str, str]] = None) -> Any:
        """
        Perform a request with retry.

        Each attempt passes ``(timeout, timeout)`` to requests as its connect
        and read timeouts. requests applies the read timeout per socket read,
        not to the whole response, so a server that keeps trickling bytes can
        hold one attempt past ``config.timeout``.

        Args:
            method: HTTP method
            endpoint: Path relative to the base URL
            params: Query parameters; None values are dropped
            body: JSON body
            headers: Extra headers

        Returns:
            Decoded JSON response, or None for an empty body

        Raises:
            NetworkError, RequestTimeoutError, RateLimitError, APIError,
            AuthenticationError: The last classified error once retries
                are exhausted or the error is fatal
        """
        query = None
        if params:
            query = {k: _query_value(v) for k, v in params.items() if v is not None}

        retry_index = 0
        while True:
            try:
                return self._send_once(method, endpoint, query, body, headers)
            except PacificaError as error:
                outcome = self.policy.classify(error, retry_index)
                if not outcome.should_retry:
                    raise
                self.logger.warning(
                    f"{method} {endpoint} failed ({error.kind.name}: {error.message}); "
                    f"retry {retry_index + 1}/{self.policy.max_retries} in {outcome.delay:.2f}s"
                )
                self.sleep(outcome.delay)
                retry_index += 1

    def _send_once(self, method: str, endpoint: str, params: Optional[Dict[str, Any]],
                   body: Any, headers: Optional[Mapping[str, str]]) -> Any:
        url = self.build_url(endpoint)
        self.logger.debug(f"{method} {url}")

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=body,
                headers=dict(headers) if headers else None,
                timeout=(self.config.timeout, self.config.timeout),
                verify=self.config.verify_ssl,
            )
        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(
                f"Request timeout after {self.config.timeout} seconds",
                timeout=self.config.timeout
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(f"Connection error: {e}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request failed: {e}") from e

        return self._handle_response(response)

    def _handle_response(self, response: requests.Response) -> Any:
        status = response.status_code

        if status == 429:
            retry_after = parse_retry_after(response.headers.get('Retry-After'))
            hint = f" Retry after {retry_after}s" if retry_after is not None else ""
            raise RateLimitError(
                f"Rate limit exceeded.{hint}",
                retry_after=retry_after,
                response_data=self._safe_json(response),
            )

        if not response.ok:
            data = self._safe_json(response)
            message = _error_message(data, response)
            error_class = AuthenticationError if status in (401, 403) else APIError
            raise error_class(message, status=status, response_data=data)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                f"Invalid JSON response: {e}",
                status=status,
                response_data=response.text
            ) from e

    @staticmethod
    def _safe_json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text or None

    def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
