"""Tests for the retry policy."""

from unittest.mock import MagicMock

import pytest
import requests

from routelens.exceptions import ModelNotConfiguredError, ModelResponseError
from routelens.retry import RetryConfig, backoff_delays, call_with_retry


def test_backoff_is_monotonic_and_capped():
    delays = list(backoff_delays(RetryConfig(attempts=6, base_delay=1.0, factor=2.0, max_delay=5.0)))

    assert delays == [1.0, 2.0, 4.0, 5.0, 5.0]
    assert all(a <= b for a, b in zip(delays, delays[1:]))


def test_success_first_try_does_not_sleep():
    sleep = MagicMock()
    assert call_with_retry(lambda: "ok", sleep=sleep) == "ok"
    sleep.assert_not_called()


def test_retries_until_success():
    func = MagicMock(side_effect=[requests.ConnectionError("down"), ModelResponseError("empty"), "ok"])
    sleep = MagicMock()

    assert call_with_retry(func, RetryConfig(attempts=3), sleep=sleep) == "ok"
    assert func.call_count == 3
    assert sleep.call_count == 2


def test_last_error_propagates_after_exhaustion(caplog):
    errors = [requests.Timeout("t1"), requests.Timeout("t2"), requests.Timeout("t3")]
    func = MagicMock(side_effect=errors)

    with pytest.raises(requests.Timeout, match="t3"):
        call_with_retry(func, RetryConfig(attempts=3), sleep=lambda _d: None)

    assert func.call_count == 3
    assert caplog.text.count("attempt") >= 3


def test_non_retryable_error_raised_immediately():
    func = MagicMock(side_effect=ModelNotConfiguredError("no key"))

    with pytest.raises(ModelNotConfiguredError):
        call_with_retry(func, RetryConfig(attempts=5), sleep=lambda _d: None)

    assert func.call_count == 1
