import pytest

from examsuite.utils.retry import RetryError, retry_async
from helpers import run


class Flaky:
    def __init__(self, failures, error=ConnectionError("down")):
        self.failures = failures
        self.error = error
        self.attempts = []

    async def __call__(self, attempt):
        self.attempts.append(attempt)
        if len(self.attempts) <= self.failures:
            raise self.error
        return "ok"


def _recording_sleep(waits):
    async def sleep(seconds):
        waits.append(seconds)
    return sleep


def test_succeeds_after_transient_failures():
    op, waits = Flaky(failures=2), []
    result = run(retry_async(op, max_attempts=3, delay=0.5, sleep=_recording_sleep(waits)))
    assert result == "ok"
    assert op.attempts == [1, 2, 3]
    assert waits == [0.5, 0.5]


def test_gives_up_after_max_attempts():
    op = Flaky(failures=10)
    with pytest.raises(RetryError) as exc_info:
        run(retry_async(op, max_attempts=3, delay=0, sleep=_recording_sleep([])))
    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.last_error, ConnectionError)


def test_backoff_multiplies_delay():
    waits = []
    with pytest.raises(RetryError):
        run(retry_async(Flaky(failures=10), max_attempts=4, delay=1, backoff=2,
                        sleep=_recording_sleep(waits)))
    assert waits == [1, 2, 4]


def test_non_retryable_errors_propagate_immediately():
    op = Flaky(failures=1, error=KeyError("bad"))
    with pytest.raises(KeyError):
        run(retry_async(op, max_attempts=3, delay=0, retry_on=(ConnectionError,),
                        sleep=_recording_sleep([])))
    assert op.attempts == [1]


def test_on_retry_callback_sees_each_failure():
    seen = []
    run(retry_async(Flaky(failures=2), max_attempts=3, delay=0,
                    on_retry=lambda n, e: seen.append(n), sleep=_recording_sleep([])))
    assert seen == [1, 2]


def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        run(retry_async(Flaky(failures=0), max_attempts=0, delay=0))
