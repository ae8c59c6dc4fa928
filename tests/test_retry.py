"""Tests for the poll-until-condition primitives."""

import asyncio

import pytest

from vaultsearch import PeriodicTask, retry_until, retry_until_done


class TestRetryUntil:
    """Tests for retry_until."""

    @pytest.mark.asyncio
    async def test_true_on_third_call(self):
        calls = 0

        def predicate():
            nonlocal calls
            calls += 1
            return calls == 3

        assert await retry_until(predicate, 0.001) is True
        assert calls == 3

    @pytest.mark.asyncio
    async def test_first_evaluation_is_immediate(self):
        calls = 0

        def predicate():
            nonlocal calls
            calls += 1
            return True

        await asyncio.wait_for(retry_until(predicate, 60), timeout=1)
        assert calls == 1

    @pytest.mark.asyncio
    async def test_async_predicate(self):
        results = iter([False, False, True])

        async def predicate():
            await asyncio.sleep(0)
            return next(results)

        assert await retry_until(predicate, 0.001) is True

    @pytest.mark.asyncio
    async def test_raising_predicate_stops(self):
        calls = 0

        def predicate():
            nonlocal calls
            calls += 1
            raise RuntimeError("index gone")

        with pytest.raises(RuntimeError, match="index gone"):
            await retry_until(predicate, 0.001)

        await asyncio.sleep(0.01)
        assert calls == 1


class TestRetryUntilDone:
    """Tests for retry_until_done."""

    @pytest.mark.asyncio
    async def test_done_on_third_call(self):
        calls = 0

        def action(done):
            nonlocal calls
            calls += 1
            if calls == 3:
                done()

        await retry_until_done(action, 0.001)
        assert calls == 3

    @pytest.mark.asyncio
    async def test_failure_after_two_calls(self):
        calls = 0

        async def action(done):
            nonlocal calls
            calls += 1
            if calls == 3:
                raise ValueError("health check broke")

        with pytest.raises(ValueError):
            await retry_until_done(action, 0.001)

        await asyncio.sleep(0.01)
        assert calls == 3

    @pytest.mark.asyncio
    async def test_no_overlapping_invocations(self):
        in_flight = 0
        max_in_flight = 0
        calls = 0

        async def action(done):
            nonlocal in_flight, max_in_flight, calls
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(0.02)
            in_flight -= 1
            calls += 1
            if calls == 3:
                done()

        await retry_until_done(action, 0.001)

        assert max_in_flight == 1
        assert calls == 3


class TestPeriodicTask:
    """Tests for PeriodicTask."""

    @pytest.mark.asyncio
    async def test_counts_invocations(self):
        task = PeriodicTask(lambda stop: stop(), 0.001)

        await task.wait()

        assert task.invocations == 1
        assert task.done

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        task = PeriodicTask(lambda stop: None, 0.001)

        first = task.start()
        second = task.start()

        assert first is second
        task.cancel()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_cancel_stops_invocations(self):
        calls = 0

        def action(stop):
            nonlocal calls
            calls += 1

        task = PeriodicTask(action, 0.01)
        task.start()
        await asyncio.sleep(0.035)
        task.cancel()
        seen = calls
        await asyncio.sleep(0.05)

        assert seen >= 1
        assert calls == seen
        assert task.done
