"""screenpilot CLI entry for ``python -m screenpilot``."""

from __future__ import annotations

from screenpilot.cli import app

if __name__ == "__main__":
    app()
