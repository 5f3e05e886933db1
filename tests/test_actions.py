from __future__ import annotations

import pytest

from screenpilot.actions import ActionType, ParsedAction, summarize_prediction


def test_from_dict_normalizes_action_type() -> None:
    action = ParsedAction.from_dict(
        {
            "action_type": " Left_Click ",
            "action_inputs": {"start_box": "[0.1, 0.2, 0.3, 0.4]"},
            "thought": "press the button",
        }
    )

    assert action.action_type is ActionType.LEFT_CLICK
    assert action.action_inputs == {"start_box": "[0.1, 0.2, 0.3, 0.4]"}
    assert action.thought == "press the button"
    assert action.reflection is None


def test_to_dict_round_trips() -> None:
    action = ParsedAction(ActionType.TYPE, {"content": "hello"}, thought="typing", reflection="ok")

    assert ParsedAction.from_dict(action.to_dict()) == action


@pytest.mark.parametrize(
    "payload",
    [
        {"action_type": "teleport"},
        {"action_type": None},
        {"action_type": "click", "action_inputs": ["x"]},
    ],
)
def test_from_dict_rejects_invalid_payloads(payload: dict) -> None:
    with pytest.raises(ValueError):
        ParsedAction.from_dict(payload)


def test_summarize_prediction_strips_reflection() -> None:
    prediction = "Reflection: the page did not load\nThought: retry\nAction: click(start_box='(1,2)')"

    assert summarize_prediction(prediction) == "Action: click(start_box='(1,2)')"


def test_summarize_prediction_keeps_plain_text() -> None:
    assert summarize_prediction("  Thought: done\nAction: finished()  ") == "Thought: done\nAction: finished()"
