"""
Poll-until-condition primitives.

Used to wait for the index service to become reachable and to drive
periodic checks. Invocations never overlap: the next one is scheduled
only after the previous one has finished.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

StopFn = Callable[[], None]
Action = Callable[[StopFn], Union[None, Awaitable[None]]]
Predicate = Callable[[], Union[bool, Awaitable[bool]]]


class PeriodicTask:
    """
    Run an action on a fixed interval until it stops itself.

    The action is called right away, then ``interval`` seconds after each
    call completes. It receives a ``stop`` callable; once called, no
    further invocation happens. An exception raised by the action ends
    the task with that exception.
    """

    def __init__(self, action: Action, interval: float):
        self.action = action
        self.interval = interval
        self.invocations = 0
        self._stopped = False
        self._task: Optional[asyncio.Task[None]] = None

    def stop(self) -> None:
        self._stopped = True

    async def _run(self) -> None:
        while True:
            result = self.action(self.stop)
            if inspect.isawaitable(result):
                await result
            self.invocations += 1

            if self._stopped:
                return
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task[None]:
        """Schedule the task on the running loop; idempotent."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())
        return self._task

    def cancel(self) -> None:
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    async def wait(self) -> None:
        """Start if needed and wait for completion, re-raising failures."""
        await self.start()


async def retry_until_done(action: Action, interval: float) -> None:
    """
    Call ``action(done)`` until it calls ``done``.

    Args:
        action: Sync or async callable receiving the ``done`` signal
        interval: Seconds between the end of one call and the next

    Raises:
        Exception: Whatever the action raised; retrying stops there
    """
    await PeriodicTask(action, interval).wait()


async def retry_until(predicate: Predicate, interval: float) -> bool:
    """
    Evaluate ``predicate`` until it returns a truthy value.

    The first evaluation is immediate.

    Args:
        predicate: Sync or async callable returning a bool
        interval: Seconds between the end of one evaluation and the next

    Returns:
        True

    Raises:
        Exception: Whatever the predicate raised; retrying stops there
    """
    async def check(done: StopFn) -> None:
        result: Any = predicate()
        if inspect.isawaitable(result):
            result = await result
        if result:
            done()

    await retry_until_done(check, interval)
    return True
