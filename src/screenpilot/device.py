"""Device and screenshot annotation collaborators."""

from __future__ import annotations

import asyncio
import io
import re
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from PIL import Image, ImageDraw

from screenpilot.actions import ParsedAction
from screenpilot.conversation import Screenshot

BOX_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
MARKER_RADIUS = 12
MARKER_COLOR = (255, 0, 0)
MARKER_WIDTH = 3


@runtime_checkable
class Device(Protocol):
    """A controlled device: capture, parse model output, execute, release."""

    async def screenshot(self) -> Screenshot | None:
        """Capture the current screen."""
        ...

    async def parse_command(self, raw: str) -> list[ParsedAction]:
        """Decode raw model text into ordered actions."""
        ...

    async def execute(self, action: ParsedAction, width: int, height: int) -> None:
        """Execute one action in the given screenshot coordinate space."""
        ...

    async def tear_down(self) -> None:
        """Release the device session. Best-effort."""
        ...


@runtime_checkable
class Annotator(Protocol):
    async def annotate(self, screenshot: Screenshot, actions: Sequence[ParsedAction]) -> bytes: ...


def parse_box(value: Any) -> tuple[float, ...] | None:
    """Read a ``start_box`` given as a sequence or a string like ``'[x1, y1, x2, y2]'``."""
    if isinstance(value, str):
        numbers = tuple(float(token) for token in BOX_NUMBER_RE.findall(value))
    elif isinstance(value, Sequence):
        try:
            numbers = tuple(float(item) for item in value)
        except (TypeError, ValueError):
            return None
    else:
        return None
    if len(numbers) not in (2, 4):
        return None
    return numbers


def box_center(box: tuple[float, ...], width: int, height: int) -> tuple[int, int]:
    """Centre of a box in pixels; boxes with all values within 0..1 are relative."""
    if len(box) == 4:
        x, y = (box[0] + box[2]) / 2, (box[1] + box[3]) / 2
    else:
        x, y = box
    if all(0 <= value <= 1 for value in box):
        x, y = x * width, y * height
    return round(x), round(y)


class ClickMarker:
    """Marks the target position of each action on a copy of the screenshot."""

    def __init__(self, *, radius: int = MARKER_RADIUS) -> None:
        self._radius = radius

    async def annotate(self, screenshot: Screenshot, actions: Sequence[ParsedAction]) -> bytes:
        return await asyncio.to_thread(self._draw, screenshot, list(actions))

    def _draw(self, screenshot: Screenshot, actions: list[ParsedAction]) -> bytes:
        image = Image.open(io.BytesIO(screenshot.image)).convert("RGB")
        draw = ImageDraw.Draw(image)
        marked = 0
        for action in actions:
            box = parse_box(action.action_inputs.get("start_box"))
            if box is None:
                continue
            x, y = box_center(box, screenshot.width, screenshot.height)
            r = self._radius
            draw.ellipse((x - r, y - r, x + r, y + r), outline=MARKER_COLOR, width=MARKER_WIDTH)
            marked += 1
        if not marked:
            return b""
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()
