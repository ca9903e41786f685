"""Tests for retry utilities."""

from unittest.mock import Mock

import pytest

from kinesis_connector.utils.retry import exponential_backoff


def test_returns_first_success():
    func = Mock(side_effect=[ValueError("boom"), "ok"])
    sleep = Mock()

    assert exponential_backoff(func, max_attempts=3, initial_delay=0.5, jitter=False, sleep=sleep) == "ok"
    sleep.assert_called_once_with(0.5)


def test_delay_grows_and_is_capped():
    func = Mock(side_effect=[ValueError()] * 3 + ["ok"])
    sleep = Mock()

    exponential_backoff(func, max_attempts=4, initial_delay=1.0, max_delay=3.0, jitter=False, sleep=sleep)

    assert [call.args[0] for call in sleep.call_args_list] == [1.0, 2.0, 3.0]


def test_reraises_after_last_attempt():
    func = Mock(side_effect=ValueError("still failing"))

    with pytest.raises(ValueError, match="still failing"):
        exponential_backoff(func, max_attempts=2, jitter=False, sleep=Mock())
    assert func.call_count == 2


def test_other_exceptions_are_not_retried():
    func = Mock(side_effect=KeyError("nope"))

    with pytest.raises(KeyError):
        exponential_backoff(func, max_attempts=3, exceptions=(ValueError,), sleep=Mock())
    assert func.call_count == 1
