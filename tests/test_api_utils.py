"""
Unit tests for retry and fallback helpers.
"""

import pytest

from procurement_ai.logic.api_utils import (
    _is_auth_error,
    call_with_fallback,
    retry_with_exponential_backoff,
)
from procurement_ai.logic.circuit_breaker import CircuitBreaker


class AuthenticationError(Exception):
    pass


class StatusError(Exception):
    def __init__(self, status_code):
        super().__init__("request failed")
        self.status_code = status_code


class Flaky:
    """Fails a fixed number of times, then succeeds."""

    def __init__(self, failures, error=ConnectionError("reset")):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class TestRetry:
    """Test exponential backoff."""

    def test_recovers_after_transient_failures(self):
        delays = []
        func = Flaky(2)
        wrapped = retry_with_exponential_backoff(max_retries=3, initial_delay=1.0, sleep=delays.append)(func)

        assert wrapped() == "ok"
        assert func.calls == 3
        assert delays == [1.0, 2.0]

    def test_gives_up_after_max_retries(self):
        func = Flaky(10)
        wrapped = retry_with_exponential_backoff(max_retries=2, sleep=lambda s: None)(func)

        with pytest.raises(ConnectionError):
            wrapped()
        assert func.calls == 3

    def test_delay_is_capped(self):
        delays = []
        wrapped = retry_with_exponential_backoff(
            max_retries=4, initial_delay=10.0, max_delay=15.0, sleep=delays.append
        )(Flaky(4))

        wrapped()
        assert delays == [10.0, 15.0, 15.0, 15.0]

    def test_auth_errors_are_not_retried(self):
        func = Flaky(5, error=AuthenticationError("bad key"))
        wrapped = retry_with_exponential_backoff(max_retries=3, sleep=lambda s: None)(func)

        with pytest.raises(AuthenticationError):
            wrapped()
        assert func.calls == 1

    def test_only_listed_exceptions_are_retried(self):
        func = Flaky(5, error=KeyError("x"))
        wrapped = retry_with_exponential_backoff(exceptions=(ConnectionError,), sleep=lambda s: None)(func)

        with pytest.raises(KeyError):
            wrapped()
        assert func.calls == 1


class TestAuthDetection:
    """Test classification of credential errors."""

    def test_by_type_name(self):
        assert _is_auth_error(AuthenticationError("x"))

    def test_by_message(self):
        assert _is_auth_error(RuntimeError("Incorrect API key provided"))
        assert not _is_auth_error(RuntimeError("rate limit reached"))

    def test_by_status_code(self):
        assert _is_auth_error(StatusError(401))
        assert not _is_auth_error(StatusError(500))


class TestCallWithFallback:
    """Test the fallback helper."""

    def test_primary_result(self):
        assert call_with_fallback(lambda: "remote", lambda: "local") == "remote"

    def test_fallback_on_error(self):
        assert call_with_fallback(Flaky(1), lambda: "local") == "local"

    def test_with_breaker(self):
        breaker = CircuitBreaker("test", failure_threshold=1)

        assert call_with_fallback(Flaky(1), lambda: "local", breaker) == "local"
        assert breaker.stats.fallback_calls == 1
