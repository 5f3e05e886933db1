"""Runtime logging helpers."""

from __future__ import annotations

import contextlib
import os
import sys
from collections.abc import Generator
from contextvars import ContextVar
from logging import Handler
from typing import Literal, TextIO

import loguru
from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

LogProfile = Literal["default", "cli"]

_PROFILE_FORMATS: dict[LogProfile, str] = {
    "cli": "[{extra[instruction]}] {message}",
    "default": (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[instruction]} | {message}"
    ),
}
_CONFIGURED_PROFILE: LogProfile | None = None
_instruction_context: ContextVar[str] = ContextVar("instruction")
MAX_INSTRUCTION_LABEL = 40


def current_instruction() -> str:
    """Get a short label for the instruction being executed in this context."""
    instruction = _instruction_context.get(None)
    if not instruction:
        return "-"
    if len(instruction) <= MAX_INSTRUCTION_LABEL:
        return instruction
    return instruction[: MAX_INSTRUCTION_LABEL - 3] + "..."


@contextlib.contextmanager
def instruction_scope(instruction: str) -> Generator[None, None, None]:
    reset_token = _instruction_context.set(instruction)
    try:
        yield
    finally:
        _instruction_context.reset(reset_token)


def _sink_for(profile: LogProfile) -> Handler | TextIO:
    if profile == "default":
        return sys.stderr
    # Rendered plans and progress own stdout; log lines go to stderr.
    return RichHandler(
        console=Console(stderr=True),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def configure_logging(*, profile: LogProfile = "default", level: str | None = None) -> None:
    """Route loguru output for ``profile`` and tag every record with the current instruction.

    Reconfiguring with the profile already in place is a no-op.
    """
    global _CONFIGURED_PROFILE
    if profile == _CONFIGURED_PROFILE:
        return

    def tag_instruction(record: loguru.Record) -> None:
        record["extra"]["instruction"] = current_instruction()

    threshold = (level or os.getenv("SCREENPILOT_LOG_LEVEL", "INFO")).upper()
    logger.remove()
    logger.configure(patcher=tag_instruction)
    logger.add(_sink_for(profile), level=threshold, format=_PROFILE_FORMATS[profile], backtrace=False, diagnose=False)
    _CONFIGURED_PROFILE = profile
