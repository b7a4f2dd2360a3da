"""
Unit tests for retry classification and backoff
"""

import pytest

from pacifica_sdk.transport.resilience import (
    OutcomeKind,
    ResilienceOutcome,
    RetryPolicy,
    classify_status,
)
from pacifica_sdk.exceptions import (
    APIError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    SigningError,
    ValidationError,
)


class TestRetryPolicy:
    """Test cases for RetryPolicy"""

    def test_delay_doubles(self):
        policy = RetryPolicy(base_delay=1.0)
        assert [policy.backoff_delay(k) for k in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_delay_capped(self):
        policy = RetryPolicy(base_delay=5.0, max_delay=60.0)
        assert policy.backoff_delay(3) == 40.0
        assert policy.backoff_delay(4) == 60.0
        assert policy.backoff_delay(10) == 60.0

    def test_reconnect_delay_is_one_indexed(self):
        policy = RetryPolicy(base_delay=5.0, max_delay=60.0)
        assert policy.reconnect_delay(1) == 5.0
        assert policy.reconnect_delay(2) == 10.0

    def test_jitter_bounds(self):
        policy = RetryPolicy(base_delay=1.0, jitter=0.5)
        for _ in range(20):
            assert 1.0 <= policy.backoff_delay(0) <= 1.5

    def test_jitter_respects_cap(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=4.0, jitter=1.0)
        for _ in range(20):
            assert policy.backoff_delay(5) == 4.0
            assert 2.0 <= policy.backoff_delay(1) <= 4.0

    @pytest.mark.parametrize("error", [
        NetworkError("reset"),
        RequestTimeoutError("slow", timeout=1.0),
        RateLimitError("slow down"),
        APIError("boom", status=503),
    ])
    def test_retryable_errors(self, error):
        outcome = RetryPolicy().classify(error, 0)
        assert outcome.kind == OutcomeKind.RETRYABLE
        assert outcome.error is error

    @pytest.mark.parametrize("error", [
        APIError("bad request", status=400),
        AuthenticationError("denied", status=401),
        ValidationError("bad"),
        SigningError("no"),
        RuntimeError("not ours"),
    ])
    def test_fatal_errors(self, error):
        outcome = RetryPolicy().classify(error, 0)
        assert outcome.kind == OutcomeKind.FATAL
        assert not outcome.should_retry

    def test_budget_exhausted(self):
        policy = RetryPolicy(max_retries=2)
        error = NetworkError("reset")
        assert policy.classify(error, 1).should_retry
        assert not policy.classify(error, 2).should_retry
        assert policy.max_attempts == 3

    def test_retry_after_respected(self):
        policy = RetryPolicy(base_delay=1.0)
        outcome = policy.classify(RateLimitError("slow", retry_after=7.0), 0)
        assert outcome.delay == 7.0

    def test_retry_after_capped(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=5.0)
        outcome = policy.classify(RateLimitError("slow", retry_after=120.0), 0)
        assert outcome.delay == 5.0

    def test_invalid_settings(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)
        with pytest.raises(ValueError):
            RetryPolicy(jitter=2.0)


class TestOutcomes:
    """Test cases for ResilienceOutcome and classify_status"""

    def test_success(self):
        outcome = ResilienceOutcome.success({'ok': True})
        assert outcome.kind == OutcomeKind.SUCCESS
        assert outcome.value == {'ok': True}

    @pytest.mark.parametrize("status,expected", [
        (200, OutcomeKind.SUCCESS),
        (204, OutcomeKind.SUCCESS),
        (400, OutcomeKind.FATAL),
        (404, OutcomeKind.FATAL),
        (429, OutcomeKind.RETRYABLE),
        (500, OutcomeKind.RETRYABLE),
        (503, OutcomeKind.RETRYABLE),
    ])
    def test_classify_status(self, status, expected):
        assert classify_status(status) == expected
