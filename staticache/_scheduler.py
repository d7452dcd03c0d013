from __future__ import annotations

import logging
import typing as tp

import anyio
from anyio.abc import TaskGroup

logger = logging.getLogger("staticache.scheduler")


class BackgroundTasks:
    """
    Runs detached coroutines in an ``anyio`` task group.

    Spawned tasks are never awaited by the code that starts them. Their failures
    are logged instead of propagating into the task group, so one crashing task
    cannot cancel the others.

    ``open`` and ``close`` enter and exit the task group, so they must be awaited
    from the same task. ``close`` waits for every pending task to finish.
    """

    def __init__(self) -> None:
        self._task_group: tp.Optional[TaskGroup] = None
        self._pending = 0
        self._idle: tp.Optional[anyio.Event] = None

    @property
    def running(self) -> bool:
        return self._task_group is not None

    async def open(self) -> None:
        if self._task_group is not None:
            return
        task_group = anyio.create_task_group()
        await task_group.__aenter__()
        self._task_group = task_group

    async def close(self) -> None:
        task_group, self._task_group = self._task_group, None
        if task_group is not None:
            await task_group.__aexit__(None, None, None)

    def spawn(
        self,
        func: tp.Callable[..., tp.Awaitable[tp.Any]],
        *args: tp.Any,
        name: tp.Optional[str] = None,
    ) -> None:
        if self._task_group is None:
            raise RuntimeError("Background tasks are not running, call open() first")

        self._pending += 1
        if self._idle is None or self._idle.is_set():
            self._idle = anyio.Event()
        self._task_group.start_soon(self._run, func, args, name, name=name)

    async def join(self) -> None:
        """
        Wait until every task spawned so far has finished.
        """
        if self._pending and self._idle is not None:
            await self._idle.wait()

    async def _run(
        self,
        func: tp.Callable[..., tp.Awaitable[tp.Any]],
        args: tp.Tuple[tp.Any, ...],
        name: tp.Optional[str],
    ) -> None:
        try:
            await func(*args)
        except Exception:
            logger.exception(f"Background task {name if name is not None else repr(func)} failed")
        finally:
            self._pending -= 1
            if self._pending == 0 and self._idle is not None:
                self._idle.set()
