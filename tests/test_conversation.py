from __future__ import annotations

from screenpilot.conversation import (
    IMAGE_PLACEHOLDER,
    NOTHING_DELIVERED,
    ConversationLog,
    Origin,
    Screenshot,
    Timing,
    Turn,
)


def _turn(value: str, origin: Origin = Origin.HUMAN) -> Turn:
    return Turn(origin=origin, value=value)


def test_snapshot_partitions_turns_between_cursors() -> None:
    log = ConversationLog()
    log.append(_turn("open the browser"))
    log.append(_turn("thinking", Origin.AGENT))

    first, cursor = log.snapshot(NOTHING_DELIVERED)
    assert [turn.value for turn in first] == ["open the browser", "thinking"]
    assert cursor == 1

    log.append(_turn("done", Origin.AGENT))
    second, cursor = log.snapshot(cursor)
    assert [turn.value for turn in second] == ["done"]
    assert cursor == 2


def test_snapshot_is_idempotent_without_appends() -> None:
    log = ConversationLog()
    log.append(_turn("a"))
    _, cursor = log.snapshot()

    assert log.snapshot(cursor) == ((), cursor)
    assert log.snapshot(cursor) == ((), cursor)


def test_snapshot_on_empty_log_keeps_cursor() -> None:
    assert ConversationLog().snapshot() == ((), NOTHING_DELIVERED)


def test_reset_clears_turns() -> None:
    log = ConversationLog()
    log.append(_turn("a"))
    log.reset()

    assert len(log) == 0
    assert log.snapshot() == ((), NOTHING_DELIVERED)


def test_screenshots_follow_placeholder_turns_in_order(screenshot: Screenshot) -> None:
    other = Screenshot(image=b"second", width=10, height=10)
    log = ConversationLog()
    log.append(_turn("instruction"))
    log.append(Turn(origin=Origin.HUMAN, value=IMAGE_PLACEHOLDER, screenshot=screenshot))
    log.append(Turn(origin=Origin.AGENT, value="click", screenshot=screenshot))
    log.append(Turn(origin=Origin.HUMAN, value=IMAGE_PLACEHOLDER, screenshot=other))

    assert log.screenshots() == [screenshot, other]
    assert [turn.value for turn in log] == ["instruction", IMAGE_PLACEHOLDER, "click", IMAGE_PLACEHOLDER]


def test_screenshot_validity_and_encoding() -> None:
    shot = Screenshot(image=b"abc", width=2, height=2)

    assert shot.is_valid
    assert shot.data_uri == "data:image/png;base64,YWJj"
    assert not Screenshot(image=b"", width=2, height=2).is_valid
    assert not Screenshot(image=b"abc", width=0, height=2).is_valid


def test_timing_since_measures_cost() -> None:
    timing = Timing.since(0)

    assert timing.start == 0
    assert timing.cost == timing.end
    assert Timing.instant().cost == 0
