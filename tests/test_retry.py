"""Retry decorator used around the completion service."""
import pytest

from stockmaster.utils.retry import calculate_backoff, is_retryable_error, retry_sync


def flaky_call(failures, error=None):
    """Callable failing `failures` times before returning "ok"; call count on .calls"""
    error = error or ConnectionError("reset")

    def call_api():
        call_api.calls += 1
        if call_api.calls <= failures:
            raise error
        return "ok"

    call_api.calls = 0
    return call_api


def test_succeeds_after_transient_failure():
    flaky = flaky_call(1)
    wrapped = retry_sync(max_attempts=2, base_delay=0)(flaky)

    assert wrapped() == "ok"
    assert flaky.calls == 2
    assert wrapped.get_retry_stats().success


def test_reraises_original_after_last_attempt():
    flaky = flaky_call(5)
    wrapped = retry_sync(max_attempts=2, base_delay=0)(flaky)

    with pytest.raises(ConnectionError):
        wrapped()
    assert flaky.calls == 2


def test_non_retryable_error_fails_fast():
    flaky = flaky_call(1, error=ValueError("invalid"))
    wrapped = retry_sync(max_attempts=3, base_delay=0)(flaky)

    with pytest.raises(ValueError):
        wrapped()
    assert flaky.calls == 1


def test_status_code_decides_retry():
    class HTTPError(Exception):
        def __init__(self, status_code):
            super().__init__(f"status {status_code}")
            self.status_code = status_code

    assert is_retryable_error(HTTPError(529))
    assert is_retryable_error(HTTPError(429))
    assert not is_retryable_error(HTTPError(400))


def test_backoff_is_capped():
    assert calculate_backoff(10, base_delay=1, max_delay=5, jitter=False) == 5
    assert calculate_backoff(2, base_delay=1, jitter=False) == 2
