"""Parsed UI actions decoded from model predictions."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ActionType(StrEnum):
    """Closed set of action discriminants produced by command parsers."""

    CLICK = "click"
    LEFT_CLICK = "left_click"
    LEFT_SINGLE = "left_single"
    LEFT_DOUBLE = "left_double"
    DOUBLE_CLICK = "double_click"
    RIGHT_CLICK = "right_click"
    RIGHT_SINGLE = "right_single"
    MIDDLE_CLICK = "middle_click"
    DRAG = "drag"
    LEFT_CLICK_DRAG = "left_click_drag"
    MOUSE_MOVE = "mouse_move"
    HOTKEY = "hotkey"
    KEY = "key"
    PRESS = "press"
    TYPE = "type"
    SCROLL = "scroll"
    SCREENSHOT = "screenshot"
    CURSOR_POSITION = "cursor_position"
    WAIT = "wait"
    FINISHED = "finished"
    CALL_USER = "call_user"
    ERROR_ENV = "error_env"
    MAX_LOOP = "max_loop"


@dataclass(frozen=True)
class ParsedAction:
    """One decoded action with its discriminant and action-specific inputs."""

    action_type: ActionType
    action_inputs: dict[str, Any] = field(default_factory=dict)
    thought: str = ""
    reflection: str | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ParsedAction:
        """Build an action from a parser payload; unknown discriminants raise ValueError."""
        raw_type = payload.get("action_type")
        if not isinstance(raw_type, str):
            raise ValueError(f"action_type must be a string, got {raw_type!r}")
        inputs = payload.get("action_inputs") or {}
        if not isinstance(inputs, dict):
            raise ValueError(f"action_inputs must be a mapping, got {type(inputs).__name__}")
        reflection = payload.get("reflection")
        return cls(
            action_type=ActionType(raw_type.strip().lower()),
            action_inputs=dict(inputs),
            thought=str(payload.get("thought") or ""),
            reflection=str(reflection) if reflection else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "action_type": self.action_type.value,
            "action_inputs": dict(self.action_inputs),
            "thought": self.thought,
            "reflection": self.reflection,
        }


REFLECTION_RE = re.compile(r"Reflection:[\s\S]*?(?=Action_Summary:|Action:|$)")


def summarize_prediction(prediction: str) -> str:
    """Drop reflection sections from a raw prediction for display."""
    return REFLECTION_RE.sub("", prediction).strip()
