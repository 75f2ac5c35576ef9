"""
Serialize jobs that share a key, run jobs with different keys concurrently.

The same webhook event can be delivered more than once. Keying jobs by
(head commit, target branch, purpose) makes sure a duplicate delivery waits
for the running job instead of creating a second check run or pull request.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

log = logging.getLogger(__name__)

Work = Callable[[], Awaitable[Any]]
FailureHandler = Callable[[BaseException], Awaitable[Any]]


class JobScheduler:
    """Keyed FIFO scheduler for coroutine jobs."""

    def __init__(self, max_concurrency: Optional[int] = None):
        """Allow at most max_concurrency jobs with distinct keys at once (None is unlimited)."""
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError(f"max_concurrency must be positive, got {max_concurrency}")
        self._slots = asyncio.Semaphore(max_concurrency) if max_concurrency else None
        self._tails: Dict[str, asyncio.Task] = {}
        self._tasks = set()

    def is_busy(self, key: str) -> bool:
        """Return whether a job with the given key is running or waiting."""
        return key in self._tails

    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, key: str, work: Work, on_failure: Optional[FailureHandler] = None) -> asyncio.Task:
        """
        Queue work under key, and return the task that runs it.

        The task waits for all previously submitted jobs with the same key. If work
        raises, on_failure is awaited with the exception and its result becomes the
        result of the task. Without on_failure, the exception is raised by the task.
        """

        previous = self._tails.get(key)
        task = asyncio.ensure_future(self._run(key, work, on_failure, previous))
        self._tails[key] = task
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._forget(key, t))
        log.debug("Queued job %s%s", key, " behind running job" if previous else "")
        return task

    def _forget(self, key: str, task: asyncio.Task):
        self._tasks.discard(task)
        if self._tails.get(key) is task:
            del self._tails[key]

    async def _run(self, key: str, work: Work, on_failure: Optional[FailureHandler], previous):
        if previous is not None:
            # Only the ordering matters, the previous job reports its own outcome
            await asyncio.wait([previous])

        async with self._slots if self._slots else contextlib.nullcontext():
            log.debug("Executing job %s", key)
            try:
                return await work()
            except Exception as e:
                if on_failure is None:
                    raise
                log.debug("Job %s failed with %r, running failure handler", key, e)
                return await on_failure(e)
            finally:
                log.debug("Finished job %s", key)

    async def wait_idle(self):
        """Wait until all submitted jobs, including ones submitted meanwhile, finished."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))
