"""Configuration management for screenpilot."""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from screenpilot.errors import ApiKeyNotConfiguredError

DEFAULT_SYSTEM_PROMPT = """You are a GUI agent. You are given a task and your action history, with screenshots. \
You need to perform the next action to complete the task.

## Output Format
```
Thought: ...
Action: ...
```

## Action Space
click(start_box='[x1, y1, x2, y2]')
left_double(start_box='[x1, y1, x2, y2]')
right_single(start_box='[x1, y1, x2, y2]')
drag(start_box='[x1, y1, x2, y2]', end_box='[x3, y3, x4, y4]')
hotkey(key='')
type(content='') #If you want to submit your input, use "\\n" at the end of `content`.
scroll(start_box='[x1, y1, x2, y2]', direction='down or up or right or left')
wait() #Sleep for 5s and take a screenshot to check for any changes.
finished()
call_user() # Submit the task and call the user when the task is unsolvable, or when you need the user's help.

## Note
- Use English in `Thought` part.
- Summarize your next action (with its target element) in one sentence in `Thought` part.

## User Instruction
"""


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SCREENPILOT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Vision-language model
    vlm_base_url: str = Field(default="http://localhost:8000/v1", description="OpenAI-compatible VLM endpoint")
    vlm_api_key: str = Field(default="EMPTY", description="API key for the VLM endpoint")
    vlm_model: str = Field(default="ui-tars", description="VLM model name")
    vlm_max_tokens: int = Field(default=1000, description="Maximum tokens per VLM response")
    vlm_temperature: float = Field(default=0.0, description="VLM sampling temperature")
    vlm_max_images: int = Field(default=5, description="Most recent screenshots sent per VLM request")
    vlm_timeout_seconds: float = Field(default=60, description="Timeout for one VLM call")

    # Reasoning oracle
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SCREENPILOT_OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="API key for the reasoning oracle and embeddings",
    )
    reasoning_base_url: str = Field(default="https://api.openai.com/v1", description="Oracle API base URL")
    reasoning_model: str = Field(
        default="gpt-4o",
        validation_alias=AliasChoices("SCREENPILOT_REASONING_MODEL", "REASONING_MODEL"),
        description="Model used to decompose goals",
    )
    reasoning_temperature: float = Field(default=0.7)
    reasoning_max_tokens: int = Field(default=1000)
    oracle_max_attempts: int = Field(default=3, ge=1, description="Attempts when the oracle is overloaded")
    oracle_initial_delay_seconds: float = Field(default=1.0, ge=0)

    # Knowledge base
    knowledge_corpus: Path | None = Field(default=None, description="YAML corpus of instruction templates")
    embedding_model: str = Field(default="text-embedding-3-small")

    # Agent loop
    max_loop_count: int = Field(default=8, ge=1)
    max_snapshot_failures: int = Field(default=10, ge=1)
    screenshot_attempts: int = Field(default=5, ge=1)
    screenshot_retry_delay_seconds: float = Field(default=1.0, ge=0)
    action_wait_ms: int = Field(default=1500, ge=0, description="Pause after each dispatched action")
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)

    # Logging
    log_level: str = Field(default="INFO")

    def require_openai_api_key(self) -> str:
        if not self.openai_api_key:
            raise ApiKeyNotConfiguredError(
                "OpenAI API key not configured. Set OPENAI_API_KEY or SCREENPILOT_OPENAI_API_KEY."
            )
        return self.openai_api_key


def load_settings(**overrides: object) -> Settings:
    """Load settings from the environment and apply non-empty overrides."""

    settings = Settings()
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    return settings
