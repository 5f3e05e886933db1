"""Reasoning oracle collaborator and its OpenAI client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

import openai
from loguru import logger
from openai import AsyncOpenAI

from screenpilot.config import Settings
from screenpilot.errors import ReasoningFailure


@dataclass(frozen=True)
class ChatMessage:
    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class OracleRequest:
    messages: tuple[ChatMessage, ...]


@dataclass(frozen=True)
class OracleResponse:
    prediction: str


@runtime_checkable
class ReasoningOracle(Protocol):
    async def invoke(self, request: OracleRequest) -> OracleResponse: ...


class OpenAIReasoningOracle:
    """Chat-completions oracle. API status errors keep their HTTP status for retry decisions."""

    def __init__(self, settings: Settings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.require_openai_api_key(),
            base_url=settings.reasoning_base_url,
        )

    @property
    def model_name(self) -> str:
        return self._settings.reasoning_model

    async def invoke(self, request: OracleRequest) -> OracleResponse:
        messages = [{"role": message.role, "content": message.content} for message in request.messages]
        logger.debug(
            "oracle.request model={} messages={} preview={!r}",
            self.model_name,
            len(messages),
            messages[-1]["content"][:50] if messages else "",
        )
        try:
            completion = await self._client.chat.completions.create(
                model=self.model_name,
                messages=messages,  # type: ignore[arg-type]
                temperature=self._settings.reasoning_temperature,
                max_tokens=self._settings.reasoning_max_tokens,
            )
        except openai.APIStatusError as exc:
            logger.error("oracle.error model={} status={} error={}", self.model_name, exc.status_code, exc.message)
            raise ReasoningFailure(f"Oracle call failed: {exc.message}", status_code=exc.status_code) from exc
        except openai.OpenAIError as exc:
            logger.error("oracle.error model={} error={}", self.model_name, exc)
            raise ReasoningFailure(f"Oracle call failed: {exc}") from exc

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise ReasoningFailure("No content in response")
        return OracleResponse(prediction=content)
