from __future__ import annotations

import io
import os

import pytest
from PIL import Image

from screenpilot.conversation import Screenshot


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for key in list(os.environ):
        if key.startswith("SCREENPILOT_") or key in {"OPENAI_API_KEY", "REASONING_MODEL"}:
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


def make_png(width: int = 100, height: int = 80) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(255, 255, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def screenshot() -> Screenshot:
    return Screenshot(image=make_png(), width=100, height=80)
