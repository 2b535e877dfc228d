"""
Tests for the retry executor
"""

from unittest.mock import AsyncMock

import pytest

from utils.exceptions import MalformedCompletion, TransientProviderError
from utils.retry import backoff_delay_ms, retry_operation


def flaky(failures: int, result: str = "ok", error: Exception = None):
    """Operation that fails `failures` times, then returns `result`."""
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise error or RuntimeError(f"boom {calls['count']}")
        return result

    return operation, calls


@pytest.mark.unit
def test_backoff_doubles_and_caps_at_five_seconds():
    assert [backoff_delay_ms(a) for a in range(1, 6)] == [1000, 2000, 4000, 5000, 5000]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_returns_first_success_without_sleeping():
    sleep = AsyncMock()
    operation, calls = flaky(0)

    assert await retry_operation(operation, "plan", max_retries=3, sleep=sleep) == "ok"
    assert calls["count"] == 1
    sleep.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("failures", [1, 2])
async def test_recovers_after_k_failures_with_k_delays(failures):
    sleep = AsyncMock()
    operation, calls = flaky(failures)

    assert await retry_operation(operation, "plan", max_retries=3, sleep=sleep) == "ok"
    assert calls["count"] == failures + 1
    assert sleep.await_count == failures
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0][:failures]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_always_failing_operation_raises_after_max_attempts():
    sleep = AsyncMock()
    operation, calls = flaky(99)

    with pytest.raises(TransientProviderError) as exc_info:
        await retry_operation(operation, "section 3 content", max_retries=5, sleep=sleep)

    assert calls["count"] == 5
    # delays between attempts only: 1s, 2s, 4s, then capped
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 4.0, 5.0]
    assert "section 3 content" in exc_info.value.message
    assert exc_info.value.context == {"operation": "section 3 content", "attempts": 5}
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_domain_errors_keep_their_type_and_gain_the_label():
    operation, _ = flaky(99, error=MalformedCompletion("no json"))

    with pytest.raises(MalformedCompletion) as exc_info:
        await retry_operation(operation, "lesson plan generation", max_retries=2, sleep=AsyncMock())

    assert exc_info.value.context["operation"] == "lesson plan generation"
    assert exc_info.value.context["attempts"] == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_defaults_to_three_attempts():
    operation, calls = flaky(99)

    with pytest.raises(TransientProviderError):
        await retry_operation(operation, "plan", sleep=AsyncMock())

    assert calls["count"] == 3
