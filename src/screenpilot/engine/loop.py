"""Capture, infer and act loop over decomposed instructions."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias, assert_never

from loguru import logger

from screenpilot.actions import ActionType, ParsedAction, summarize_prediction
from screenpilot.conversation import (
    IMAGE_PLACEHOLDER,
    NOTHING_DELIVERED,
    ConversationLog,
    Origin,
    Screenshot,
    Timing,
    Turn,
    now_ms,
)
from screenpilot.device import Annotator, Device
from screenpilot.errors import CaptureFailure, DeviceFailure, ExecutionFailure, InferenceFailure, ScreenPilotError
from screenpilot.logging_utils import instruction_scope
from screenpilot.planning.decomposer import InstructionDecomposer
from screenpilot.progress import AgentStatus, ProgressObserver, ProgressSnapshot
from screenpilot.vlm import VisionLanguageModel, VlmMessage, VlmRequest, VlmResponse

if TYPE_CHECKING:
    from screenpilot.config import Settings

DEFAULT_ACTION_DELAY_SECONDS = 1.5
AGENT_MODE = "agent"
MAX_LOOPS_MESSAGE = "Exceeds the maximum number of loops"
SNAPSHOT_FAILURES_MESSAGE = "Too many screenshot failures"

ActionDelay: TypeAlias = Callable[[ActionType], float]


@dataclass(frozen=True)
class LoopLimits:
    """Budgets for one instruction's loop."""

    max_loop_count: int = 8
    max_snapshot_failures: int = 10
    screenshot_attempts: int = 5
    screenshot_retry_delay: float = 1.0

    def __post_init__(self) -> None:
        for name in ("max_loop_count", "max_snapshot_failures", "screenshot_attempts"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")
        if self.screenshot_retry_delay < 0:
            raise ValueError(f"screenshot_retry_delay must not be negative, got {self.screenshot_retry_delay}")

    @classmethod
    def from_settings(cls, settings: Settings) -> LoopLimits:
        return cls(
            max_loop_count=settings.max_loop_count,
            max_snapshot_failures=settings.max_snapshot_failures,
            screenshot_attempts=settings.screenshot_attempts,
            screenshot_retry_delay=settings.screenshot_retry_delay_seconds,
        )


@dataclass(frozen=True)
class InstructionOutcome:
    """Status an instruction's loop ended in, before the reset for the next one."""

    instruction: str
    status: AgentStatus
    loops: int
    snapshot_errors: int


@dataclass
class _InstructionState:
    loop_count: int = 0
    snapshot_errors: int = 0


def derive_status(action_type: ActionType) -> AgentStatus:
    match action_type:
        case ActionType.ERROR_ENV | ActionType.CALL_USER | ActionType.FINISHED:
            return AgentStatus.END
        case ActionType.MAX_LOOP:
            return AgentStatus.MAX_LOOP
        case (
            ActionType.CLICK
            | ActionType.LEFT_CLICK
            | ActionType.LEFT_SINGLE
            | ActionType.LEFT_DOUBLE
            | ActionType.DOUBLE_CLICK
            | ActionType.RIGHT_CLICK
            | ActionType.RIGHT_SINGLE
            | ActionType.MIDDLE_CLICK
            | ActionType.DRAG
            | ActionType.LEFT_CLICK_DRAG
            | ActionType.MOUSE_MOVE
            | ActionType.HOTKEY
            | ActionType.KEY
            | ActionType.PRESS
            | ActionType.TYPE
            | ActionType.SCROLL
            | ActionType.SCREENSHOT
            | ActionType.CURSOR_POSITION
            | ActionType.WAIT
        ):
            return AgentStatus.RUNNING
        case _:
            assert_never(action_type)


def fixed_delay(seconds: float) -> ActionDelay:
    return lambda _action_type: seconds


class AgentLoop:
    """Runs each decomposed instruction through the screenshot, model and action cycle.

    One instance owns one run: its conversation log, status, counters and the
    device session. Progress is pushed to ``observer`` after every
    state-affecting step; each turn is delivered in exactly one snapshot.
    """

    def __init__(
        self,
        *,
        goal: str,
        device: Device,
        vlm: VisionLanguageModel,
        decomposer: InstructionDecomposer,
        system_prompt: str,
        observer: ProgressObserver | None = None,
        annotator: Annotator | None = None,
        model_name: str | None = None,
        limits: LoopLimits | None = None,
        action_delay: ActionDelay | None = None,
        abort: asyncio.Event | None = None,
    ) -> None:
        self._goal = goal
        self._device = device
        self._vlm = vlm
        self._decomposer = decomposer
        self._system_prompt = system_prompt
        self._observer = observer
        self._annotator = annotator
        self._model_name = model_name or vlm.model_name
        self._limits = limits or LoopLimits()
        self._action_delay = action_delay or fixed_delay(DEFAULT_ACTION_DELAY_SECONDS)
        self._abort = abort or asyncio.Event()

        self._log = ConversationLog()
        self._cursor = NOTHING_DELIVERED
        self._status = AgentStatus.INIT
        self._instruction = ""
        self._started_at = now_ms()
        self._outcomes: list[InstructionOutcome] = []

    @property
    def status(self) -> AgentStatus:
        return self._status

    @property
    def abort(self) -> asyncio.Event:
        return self._abort

    @property
    def conversation(self) -> ConversationLog:
        return self._log

    @property
    def outcomes(self) -> list[InstructionOutcome]:
        return list(self._outcomes)

    async def run(self) -> list[InstructionOutcome]:
        instructions = await self._decomposer.decompose(self._goal)
        logger.info("agent.run.start goal={!r} instructions={}", self._goal, len(instructions))
        self._status = AgentStatus.RUNNING

        for instruction in instructions:
            with instruction_scope(instruction):
                await self._run_instruction(instruction)
            if self._abort.is_set():
                logger.warning("agent.run.aborted completed={}/{}", len(self._outcomes), len(instructions))
                break

        self._status = AgentStatus.END
        await self._emit()
        logger.info("agent.run.finish outcomes={}", [outcome.status.value for outcome in self._outcomes])
        return self.outcomes

    async def _run_instruction(self, instruction: str) -> None:
        self._log.reset()
        self._cursor = NOTHING_DELIVERED
        self._instruction = instruction
        self._log.append(Turn(origin=Origin.HUMAN, value=instruction, timing=Timing.instant()))
        state = _InstructionState()
        logger.info("agent.instruction.start instruction={!r}", instruction)
        await self._emit()

        try:
            while self._status == AgentStatus.RUNNING:
                await self._iterate(state)
            self._outcomes.append(
                InstructionOutcome(
                    instruction=instruction,
                    status=self._status,
                    loops=state.loop_count,
                    snapshot_errors=state.snapshot_errors,
                )
            )
        except ScreenPilotError:
            logger.opt(exception=True).error("agent.instruction.error instruction={!r}", instruction)
            raise
        finally:
            self._status = AgentStatus.RUNNING
            await self._emit()
            await self._tear_down()
            logger.info("agent.instruction.finish status={}", self._status)

    async def _iterate(self, state: _InstructionState) -> None:
        if self._abort.is_set():
            logger.info("agent.loop.abort_received")
            self._status = AgentStatus.END
            await self._emit()
            return

        state.loop_count += 1
        logger.info("agent.loop.iteration loop={} snapshot_errors={}", state.loop_count, state.snapshot_errors)
        if (
            state.loop_count >= self._limits.max_loop_count
            or state.snapshot_errors >= self._limits.max_snapshot_failures
        ):
            self._status = AgentStatus.MAX_LOOP
            over_budget = state.loop_count >= self._limits.max_loop_count
            message = MAX_LOOPS_MESSAGE if over_budget else SNAPSHOT_FAILURES_MESSAGE
            logger.warning("agent.loop.max_loop reason={!r}", message)
            await self._emit(error_message=message)
            return

        start = now_ms()
        screenshot = await self._capture()
        if screenshot is None or not screenshot.is_valid:
            logger.warning("agent.snapshot.invalid snapshot_errors={}", state.snapshot_errors + 1)
            state.loop_count -= 1
            state.snapshot_errors += 1
            return

        logger.info("agent.snapshot width={} height={}", screenshot.width, screenshot.height)
        self._log.append(
            Turn(origin=Origin.HUMAN, value=IMAGE_PLACEHOLDER, screenshot=screenshot, timing=Timing.since(start))
        )
        await self._emit()

        start = now_ms()
        response = await self._infer()
        if not response.prediction:
            logger.warning("agent.vlm.empty_prediction loop={}", state.loop_count)
            return

        actions = await self._parse(response.prediction)
        annotated = await self._annotate(screenshot, actions) if actions else b""
        self._log.append(
            Turn(
                origin=Origin.AGENT,
                value=summarize_prediction(response.prediction),
                screenshot=screenshot,
                annotated_screenshot=annotated or None,
                actions=tuple(actions),
                reflections=response.reflections,
                timing=Timing.since(start),
            )
        )
        await self._emit()

        logger.info("agent.parsed actions={}", [action.action_type.value for action in actions])
        for action in actions:
            self._status = derive_status(action.action_type)
            logger.info("agent.action action_type={} status={}", action.action_type.value, self._status)
            await self._emit()

            if action.action_type != ActionType.WAIT and not self._abort.is_set():
                await self._execute(action, screenshot)
            await asyncio.sleep(self._action_delay(action.action_type))

    async def _capture(self) -> Screenshot | None:
        attempts = self._limits.screenshot_attempts
        delay = self._limits.screenshot_retry_delay
        for attempt in range(1, attempts + 1):
            try:
                return await self._device.screenshot()
            except Exception as exc:
                logger.warning("agent.snapshot.retry attempt={}/{} error={}", attempt, attempts, exc)
                if attempt == attempts:
                    if isinstance(exc, CaptureFailure):
                        raise
                    raise CaptureFailure(f"Screenshot failed after {attempts} attempts: {exc}") from exc
                await asyncio.sleep(delay)
                delay *= 2
        raise AssertionError("unreachable")

    async def _infer(self) -> VlmResponse:
        request = self._build_vlm_request()
        try:
            return await self._vlm.invoke(request, abort=self._abort)
        except InferenceFailure:
            raise
        except Exception as exc:
            raise InferenceFailure(f"VLM call failed: {exc}") from exc

    async def _parse(self, prediction: str) -> list[ParsedAction]:
        try:
            return list(await self._device.parse_command(prediction))
        except ScreenPilotError:
            raise
        except Exception as exc:
            raise DeviceFailure(f"Failed to parse prediction: {exc}") from exc

    async def _annotate(self, screenshot: Screenshot, actions: Sequence[ParsedAction]) -> bytes:
        if self._annotator is None:
            return b""
        try:
            return await self._annotator.annotate(screenshot, actions)
        except Exception:
            logger.opt(exception=True).error("agent.annotate.error")
            return b""

    async def _execute(self, action: ParsedAction, screenshot: Screenshot) -> None:
        try:
            await self._device.execute(action, screenshot.width, screenshot.height)
        except ExecutionFailure:
            raise
        except Exception as exc:
            raise ExecutionFailure(f"Failed to execute {action.action_type.value}: {exc}") from exc

    async def _tear_down(self) -> None:
        try:
            await self._device.tear_down()
        except Exception:
            logger.opt(exception=True).warning("agent.device.tear_down_failed")

    def _build_vlm_request(self) -> VlmRequest:
        messages: list[VlmMessage] = []
        for index, turn in enumerate(self._log):
            value = turn.value
            if index == 0 and turn.origin == Origin.HUMAN:
                value = f"{self._system_prompt}{value}"
            messages.append(VlmMessage(origin=turn.origin, value=value))
        images = tuple(screenshot.image for screenshot in self._log.screenshots())
        return VlmRequest(conversations=tuple(messages), images=images)

    async def _emit(self, *, error_message: str | None = None) -> None:
        turns, self._cursor = self._log.snapshot(self._cursor)
        snapshot = ProgressSnapshot(
            goal=self._goal,
            instruction=self._instruction,
            system_prompt=self._system_prompt,
            model_name=self._model_name,
            mode=AGENT_MODE,
            status=self._status,
            started_at=self._started_at,
            turns=turns,
            error_message=error_message,
        )
        logger.debug("agent.emit status={} turns={}", snapshot.status, len(turns))
        if self._observer is None:
            return
        result = self._observer(snapshot)
        if inspect.isawaitable(result):
            await result
