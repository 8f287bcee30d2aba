"""Tests for the bounded poll-until-success helper."""

import pytest

from clusteroperator.core.errors import ProviderError
from clusteroperator.resources.retry import RetryPolicy, poll_until

FAST = RetryPolicy(timeout=1.0, initial=0.0, maximum=0.0)


class NotYet(Exception):
    pass


def is_not_yet(exc):
    return isinstance(exc, NotYet)


def check_failing(times, result="ready"):
    calls = []

    async def check():
        calls.append(1)
        if len(calls) <= times:
            raise NotYet(f"attempt {len(calls)}")
        return result

    return check, calls


class TestPollUntil:
    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        check, calls = check_failing(0)

        result = await poll_until(check, policy=FAST, retry_on=is_not_yet, what="thing")

        assert result == "ready"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retries_retryable_errors(self):
        check, calls = check_failing(3)

        result = await poll_until(check, policy=FAST, retry_on=is_not_yet, what="thing")

        assert result == "ready"
        assert len(calls) == 4

    @pytest.mark.asyncio
    async def test_other_errors_propagate_immediately(self):
        check, calls = check_failing(5)

        with pytest.raises(NotYet):
            await poll_until(check, policy=FAST, retry_on=lambda e: False, what="thing")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_deadline_chains_last_error(self):
        check, calls = check_failing(10**9)

        with pytest.raises(ProviderError) as exc_info:
            await poll_until(
                check,
                policy=RetryPolicy(timeout=0.05, initial=0.0, maximum=0.0),
                retry_on=is_not_yet,
                what="instance profile 'p'",
                details={"name": "p"},
            )

        error = exc_info.value
        assert error.message == "Timed out after 0.05s waiting for instance profile 'p'"
        assert error.details == {"name": "p", "timeout": 0.05}
        assert isinstance(error.__cause__, NotYet)
        assert str(error.__cause__) == f"attempt {len(calls)}"

    def test_default_policy(self):
        policy = RetryPolicy()

        assert (policy.timeout, policy.initial, policy.maximum) == (120.0, 1.0, 15.0)
