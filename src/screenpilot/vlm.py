"""Vision-language model collaborator and an OpenAI-compatible client."""

from __future__ import annotations

import asyncio
import base64
import contextlib
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import openai
from loguru import logger
from openai import AsyncOpenAI

from screenpilot.config import Settings
from screenpilot.conversation import IMAGE_PLACEHOLDER, Origin
from screenpilot.errors import InferenceFailure


@dataclass(frozen=True)
class VlmMessage:
    origin: Origin
    value: str


@dataclass(frozen=True)
class VlmRequest:
    """Instruction-scoped history plus every screenshot seen so far, in order."""

    conversations: tuple[VlmMessage, ...]
    images: tuple[bytes, ...]


@dataclass(frozen=True)
class VlmResponse:
    prediction: str
    reflections: tuple[str, ...] = ()


@runtime_checkable
class VisionLanguageModel(Protocol):
    @property
    def model_name(self) -> str: ...

    async def invoke(self, request: VlmRequest, *, abort: asyncio.Event | None = None) -> VlmResponse: ...


def build_chat_messages(request: VlmRequest, *, max_images: int) -> list[dict[str, Any]]:
    """Render a request as chat messages, keeping only the most recent screenshots.

    Placeholder turns are matched to ``request.images`` in order. Placeholders
    whose image falls outside the last ``max_images`` are dropped.
    """
    first_kept = max(0, len(request.images) - max_images)
    messages: list[dict[str, Any]] = []
    image_index = 0
    for message in request.conversations:
        role = "assistant" if message.origin == Origin.AGENT else "user"
        if message.value != IMAGE_PLACEHOLDER:
            messages.append({"role": role, "content": message.value})
            continue
        if image_index >= len(request.images):
            continue
        image = request.images[image_index]
        image_index += 1
        if image_index - 1 < first_kept:
            continue
        encoded = base64.b64encode(image).decode("ascii")
        messages.append(
            {
                "role": role,
                "content": [{"type": "image_url", "image_url": {"url": f"data:image/png;base64,{encoded}"}}],
            }
        )
    return messages


class OpenAIVisionModel:
    """VLM served behind an OpenAI-compatible chat endpoint (vLLM, Hugging Face TGI)."""

    def __init__(self, settings: Settings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or AsyncOpenAI(
            base_url=settings.vlm_base_url,
            api_key=settings.vlm_api_key,
            timeout=settings.vlm_timeout_seconds,
        )

    @property
    def model_name(self) -> str:
        return self._settings.vlm_model

    async def invoke(self, request: VlmRequest, *, abort: asyncio.Event | None = None) -> VlmResponse:
        messages = build_chat_messages(request, max_images=self._settings.vlm_max_images)
        call = asyncio.ensure_future(self._complete(messages))
        if abort is None:
            return await call

        aborted = asyncio.ensure_future(abort.wait())
        try:
            done, _ = await asyncio.wait({call, aborted}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            aborted.cancel()
            if not call.done():
                call.cancel()
        if call in done:
            return call.result()

        with contextlib.suppress(asyncio.CancelledError):
            await call
        logger.info("vlm.invoke.aborted model={}", self.model_name)
        return VlmResponse(prediction="")

    async def _complete(self, messages: list[dict[str, Any]]) -> VlmResponse:
        try:
            completion = await self._client.chat.completions.create(
                model=self._settings.vlm_model,
                messages=messages,  # type: ignore[arg-type]
                max_tokens=self._settings.vlm_max_tokens,
                temperature=self._settings.vlm_temperature,
            )
        except openai.OpenAIError as exc:
            logger.error("vlm.invoke.error model={} error={}", self.model_name, exc)
            raise InferenceFailure(f"VLM call failed: {exc}") from exc

        if not completion.choices:
            return VlmResponse(prediction="")
        content = completion.choices[0].message.content or ""
        return VlmResponse(prediction=content)
