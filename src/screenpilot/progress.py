"""Progress snapshots emitted by the agent loop and a queue-backed observer."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeAlias
from enum import StrEnum

from screenpilot.conversation import Turn

SNAPSHOT_VERSION = 1


class AgentStatus(StrEnum):
    INIT = "init"
    RUNNING = "running"
    END = "end"
    MAX_LOOP = "max_loop"


@dataclass(frozen=True)
class ProgressSnapshot:
    """Read-only view of run metadata, current status and newly available turns."""

    goal: str
    instruction: str
    system_prompt: str
    model_name: str
    mode: str
    status: AgentStatus
    started_at: int
    turns: tuple[Turn, ...] = ()
    error_message: str | None = None
    version: int = SNAPSHOT_VERSION


ProgressObserver: TypeAlias = Callable[[ProgressSnapshot], Awaitable[None] | None]


class ProgressChannel:
    """Bounded in-memory channel of snapshots.

    Used as an observer, it makes the loop wait whenever the consumer falls
    ``maxsize`` snapshots behind.
    """

    def __init__(self, maxsize: int = 64) -> None:
        self._queue: asyncio.Queue[ProgressSnapshot] = asyncio.Queue(maxsize=maxsize)

    async def __call__(self, snapshot: ProgressSnapshot) -> None:
        await self._queue.put(snapshot)

    async def get(self, timeout_seconds: float | None = None) -> ProgressSnapshot | None:
        if timeout_seconds is None:
            return await self._queue.get()
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout_seconds)
        except TimeoutError:
            return None

    def drain(self) -> list[ProgressSnapshot]:
        drained: list[ProgressSnapshot] = []
        while not self._queue.empty():
            drained.append(self._queue.get_nowait())
        return drained

    def __len__(self) -> int:
        return self._queue.qsize()
