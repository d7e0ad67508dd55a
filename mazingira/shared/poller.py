"""Submit / poll / resolve protocol for long-running backend jobs.

A job moves ``submitted -> running -> completed | failed``. ``JobPoller``
submits once, then issues one status query per tick until the backend
reports a terminal state. Queries never overlap: the next one only starts
after the previous one returned and the delay elapsed. The loop is bounded
by ``PollPolicy.max_wait_s`` and ``PollPolicy.max_attempts``.

Abandoning the awaiting task (``asyncio`` cancellation) stops the loop at
its current suspension point. The backend job itself keeps running and is
simply ignored.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, List, Literal, Optional, Protocol, Sequence

from .errors import JobFailed, JobTimeoutError
from .logging import get_logger

LOGGER = get_logger(__name__)

JobState = Literal["submitted", "running", "completed", "failed"]
TERMINAL_STATES = ("completed", "failed")

ProgressCallback = Callable[[str], None]


@dataclass(frozen=True)
class JobStatus:
    state: JobState
    result_locator: Optional[str] = None
    error: Optional[str] = None
    payload: Any = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass
class AsyncJobHandle:
    token: Any
    is_done: bool = False
    result_locator: Optional[str] = None
    polls: int = 0
    last_status: Optional[JobStatus] = None


@dataclass(frozen=True)
class PollPolicy:
    interval_s: float = 5.0
    backoff: float = 1.0
    max_interval_s: float = 30.0
    max_wait_s: Optional[float] = 600.0
    max_attempts: Optional[int] = None

    def delays(self) -> Iterator[float]:
        delay = self.interval_s
        while True:
            yield min(delay, self.max_interval_s)
            delay *= self.backoff


class JobBackend(Protocol):
    async def submit(self, request: Any) -> Any: ...

    async def refresh(self, token: Any) -> Any: ...

    def status(self, token: Any) -> JobStatus: ...


class JobPoller:
    def __init__(
        self,
        backend: JobBackend,
        policy: Optional[PollPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.policy = policy or PollPolicy()
        self._sleep = sleep
        self._clock = clock
        self.handle: Optional[AsyncJobHandle] = None
        self.last_polls = 0

    def _read_status(self, handle: AsyncJobHandle) -> JobStatus:
        try:
            status = self.backend.status(handle.token)
        except Exception as e:
            raise JobFailed(f"malformed job status: {e}", status=handle.last_status) from e
        handle.last_status = status
        return status

    def _resolve(self, handle: AsyncJobHandle, status: JobStatus) -> JobStatus:
        if status.state == "failed":
            raise JobFailed(f"job failed: {status.error or 'no detail'}", status=status)
        if not status.result_locator:
            raise JobFailed("job completed without a result locator", status=status)
        handle.is_done = True
        handle.result_locator = status.result_locator
        return status

    async def run(self, request: Any) -> JobStatus:
        policy = self.policy
        started = self._clock()
        try:
            token = await self.backend.submit(request)
        except Exception as e:
            raise JobFailed(f"job submission failed: {e}") from e
        handle = AsyncJobHandle(token=token)
        self.handle = handle
        try:
            status = self._read_status(handle)
            LOGGER.info("[poller] submitted job state=%s", status.state)
            delays = policy.delays()
            while not status.is_terminal:
                if policy.max_attempts is not None and handle.polls >= policy.max_attempts:
                    raise JobTimeoutError(f"job not done after {handle.polls} polls", status=status)
                delay = next(delays)
                if policy.max_wait_s is not None and (self._clock() - started) + delay > policy.max_wait_s:
                    raise JobTimeoutError(f"job not done within {policy.max_wait_s:.0f}s", status=status)
                await self._sleep(delay)
                try:
                    handle.token = await self.backend.refresh(handle.token)
                except Exception as e:
                    raise JobFailed(f"status query failed: {e}", status=handle.last_status) from e
                finally:
                    handle.polls += 1
                status = self._read_status(handle)
                LOGGER.debug("[poller] poll=%d state=%s", handle.polls, status.state)
            return self._resolve(handle, status)
        except asyncio.CancelledError:
            LOGGER.info("[poller] abandoned after %d poll(s)", handle.polls)
            raise
        finally:
            self.last_polls = handle.polls
            self.handle = None


DEFAULT_PROGRESS_MESSAGES: Sequence[str] = ("Working...",)


class ProgressTicker:
    """Rotates status strings on a fixed cadence while a block runs.

    The first message is published on entry. The rotation task is cancelled
    and awaited on every exit path.
    """

    def __init__(
        self,
        messages: Sequence[str],
        on_progress: Optional[ProgressCallback],
        interval_s: float = 4.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.messages: List[str] = list(messages) or list(DEFAULT_PROGRESS_MESSAGES)
        self.on_progress = on_progress
        self.interval_s = interval_s
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _publish(self, index: int) -> None:
        if self.on_progress is not None:
            self.on_progress(self.messages[index % len(self.messages)])

    async def _rotate(self) -> None:
        index = 0
        while True:
            await self._sleep(self.interval_s)
            index += 1
            self.ticks += 1
            self._publish(index)

    async def __aenter__(self) -> "ProgressTicker":
        self._publish(0)
        self._task = asyncio.create_task(self._rotate())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
