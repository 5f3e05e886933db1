from __future__ import annotations

import io

import pytest
from PIL import Image

from screenpilot.actions import ActionType, ParsedAction
from screenpilot.conversation import Screenshot
from screenpilot.device import ClickMarker, box_center, parse_box


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("[0.1, 0.2, 0.3, 0.4]", (0.1, 0.2, 0.3, 0.4)),
        ("(120,45)", (120.0, 45.0)),
        ([10, 20, 30, 40], (10.0, 20.0, 30.0, 40.0)),
        ("[1, 2, 3]", None),
        (["a", "b"], None),
        (None, None),
    ],
)
def test_parse_box(value, expected) -> None:
    assert parse_box(value) == expected


def test_box_center_relative_and_absolute() -> None:
    assert box_center((0.1, 0.2, 0.3, 0.4), 100, 80) == (20, 24)
    assert box_center((10.0, 20.0, 30.0, 40.0), 100, 80) == (20, 30)
    assert box_center((50.0, 60.0), 100, 80) == (50, 60)


@pytest.mark.asyncio
async def test_click_marker_draws_on_a_copy(screenshot: Screenshot) -> None:
    actions = [ParsedAction(ActionType.CLICK, {"start_box": "[0.5, 0.5, 0.5, 0.5]"})]

    annotated = await ClickMarker().annotate(screenshot, actions)

    image = Image.open(io.BytesIO(annotated))
    assert image.size == (100, 80)
    assert (255, 0, 0) in set(image.convert("RGB").getdata())
    assert annotated != screenshot.image


@pytest.mark.asyncio
async def test_click_marker_without_targets_returns_empty(screenshot: Screenshot) -> None:
    actions = [ParsedAction(ActionType.FINISHED), ParsedAction(ActionType.TYPE, {"content": "hi"})]

    assert await ClickMarker().annotate(screenshot, actions) == b""
