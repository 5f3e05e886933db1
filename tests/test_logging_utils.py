from __future__ import annotations

import pytest
from loguru import logger

from screenpilot import logging_utils
from screenpilot.logging_utils import configure_logging, current_instruction, instruction_scope


def test_current_instruction_is_scoped_and_truncated() -> None:
    assert current_instruction() == "-"

    with instruction_scope("Type the website URL into the address bar and press Enter"):
        assert current_instruction() == "Type the website URL into the address..."
        with instruction_scope("Click Swap"):
            assert current_instruction() == "Click Swap"
        assert current_instruction().startswith("Type the website URL")

    assert current_instruction() == "-"


def test_configured_logger_tags_records_with_instruction(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_utils, "_CONFIGURED_PROFILE", None)
    configure_logging(profile="default", level="DEBUG")
    seen: list[str] = []
    sink_id = logger.add(lambda message: seen.append(message.record["extra"]["instruction"]), level="DEBUG")
    try:
        with instruction_scope("Open the settings app"):
            logger.info("agent.test.inside")
        logger.info("agent.test.outside")
    finally:
        logger.remove(sink_id)

    assert seen == ["Open the settings app", "-"]
