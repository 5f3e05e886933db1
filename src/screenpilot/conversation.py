"""Instruction-scoped conversation log."""

from __future__ import annotations

import base64
import time
from collections.abc import Iterator
from dataclasses import dataclass
from enum import StrEnum

from screenpilot.actions import ParsedAction

IMAGE_PLACEHOLDER = "<image>"
NOTHING_DELIVERED = -1


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Screenshot:
    """Captured screen image with its pixel size."""

    image: bytes
    width: int
    height: int

    @property
    def is_valid(self) -> bool:
        return bool(self.image) and self.width > 0 and self.height > 0

    @property
    def base64(self) -> str:
        return base64.b64encode(self.image).decode("ascii")

    @property
    def data_uri(self) -> str:
        return f"data:image/png;base64,{self.base64}"


@dataclass(frozen=True)
class Timing:
    """Wall-clock timing of one turn in epoch milliseconds."""

    start: int
    end: int
    cost: int

    @classmethod
    def since(cls, start: int) -> Timing:
        end = now_ms()
        return cls(start=start, end=end, cost=end - start)

    @classmethod
    def instant(cls) -> Timing:
        stamp = now_ms()
        return cls(start=stamp, end=stamp, cost=0)


class Origin(StrEnum):
    HUMAN = "human"
    AGENT = "gpt"


@dataclass(frozen=True)
class Turn:
    """One conversation entry; never mutated after append."""

    origin: Origin
    value: str
    screenshot: Screenshot | None = None
    annotated_screenshot: bytes | None = None
    actions: tuple[ParsedAction, ...] = ()
    reflections: tuple[str, ...] = ()
    timing: Timing | None = None

    @property
    def is_screenshot(self) -> bool:
        return self.value == IMAGE_PLACEHOLDER and self.screenshot is not None


class ConversationLog:
    """Append-only ordered record of turns for the current instruction.

    Delivery to observers is tracked by the caller through a cursor holding
    the index of the last delivered turn. ``snapshot`` hands out the turns
    after the cursor together with the advanced cursor, so consecutive calls
    partition the log into disjoint slices in insertion order.
    """

    def __init__(self) -> None:
        self._turns: list[Turn] = []

    def append(self, turn: Turn) -> None:
        self._turns.append(turn)

    def snapshot(self, since: int = NOTHING_DELIVERED) -> tuple[tuple[Turn, ...], int]:
        pending = tuple(self._turns[since + 1 :])
        if not pending:
            return (), since
        return pending, len(self._turns) - 1

    def reset(self) -> None:
        self._turns.clear()

    def screenshots(self) -> list[Screenshot]:
        return [turn.screenshot for turn in self._turns if turn.is_screenshot and turn.screenshot is not None]

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))
