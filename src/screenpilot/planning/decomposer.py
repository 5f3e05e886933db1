"""Goal decomposition into atomic instructions."""

from __future__ import annotations

import asyncio
import inspect

from loguru import logger

from screenpilot.errors import EmptyGoalFailure, ReasoningFailure
from screenpilot.knowledge.records import KnowledgeRecord
from screenpilot.knowledge.retriever import KnowledgeSource
from screenpilot.planning.oracle import ChatMessage, OracleRequest, OracleResponse, ReasoningOracle

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY_SECONDS = 1.0

PROMPT_HEADER = "You are an AI assistant that generates step-by-step instructions for computer tasks."

REFERENCE_GUIDELINES = """IMPORTANT GUIDELINES:
1. Follow the SAME STRUCTURE as the reference instructions
2. Use the SAME TECHNICAL STEPS in the same order
3. Keep all URLs, button names, and specific values EXACTLY the same
4. Maintain the same level of detail for each step
5. Keep all critical information like passwords, addresses, and technical terms identical
6. You may rephrase slightly but preserve the technical accuracy
7. Each instruction must achieve the same technical outcome as its reference"""

FIRST_PRINCIPLES_GUIDANCE = """You need to generate step by step instructions for the task.
These instructions will be used to automate user interface.
You need to generate list of instructions.
While generate instructions, you need to split them by line breaking.
And each instruction should be a small piece of the thing you need to do at specific step.
Make it clear and detailed so I can easily follow the instructions.

Example format:
Open the web browser
Click the address bar
Type the website URL and press Enter"""

PROMPT_FOOTER = """Do not generate any other system prompt or guidelines.
Only generate instructions.
Do not include anything such as Step 1:, etc.
Only generate instructions."""


def build_instruction_prompt(match: KnowledgeRecord | None) -> str:
    """System prompt for the oracle, grounded by a knowledge match when there is one."""
    if match is not None:
        reference = "\n".join(match.instructions)
        body = (
            "I have a reference instruction set that you should follow VERY closely:\n\n"
            f"{reference}\n\n{REFERENCE_GUIDELINES}"
        )
    else:
        body = FIRST_PRINCIPLES_GUIDANCE
    return f"{PROMPT_HEADER}\n\n{body}\n\n{PROMPT_FOOTER}"


class InstructionDecomposer:
    """Turns a goal into an ordered list of atomic instructions via the oracle."""

    def __init__(
        self,
        oracle: ReasoningOracle,
        retriever: KnowledgeSource | None = None,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS,
    ) -> None:
        self._oracle = oracle
        self._retriever = retriever
        self._max_attempts = max(1, max_attempts)
        self._initial_delay = initial_delay

    async def decompose(self, goal: str) -> list[str]:
        if not goal or not goal.strip():
            raise EmptyGoalFailure("A goal is required to plan instructions.")

        match = await self._lookup(goal)
        request = OracleRequest(
            messages=(
                ChatMessage(role="system", content=build_instruction_prompt(match)),
                ChatMessage(role="user", content=goal),
            )
        )
        response = await self._invoke_with_retry(request)
        # Every line is an instruction, blank lines included.
        instructions = response.prediction.split("\n")
        logger.info("planner.decomposed instructions={} grounded={}", len(instructions), match is not None)
        return instructions

    async def _lookup(self, goal: str) -> KnowledgeRecord | None:
        if self._retriever is None:
            return None
        result = self._retriever.find(goal)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _invoke_with_retry(self, request: OracleRequest) -> OracleResponse:
        delay = self._initial_delay
        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._oracle.invoke(request)
            except ReasoningFailure as exc:
                if not exc.overloaded or attempt == self._max_attempts:
                    raise
                logger.warning(
                    "planner.oracle.overloaded attempt={}/{} retry_in={}s",
                    attempt,
                    self._max_attempts,
                    delay,
                )
                await asyncio.sleep(delay)
                delay *= 2
        raise AssertionError("unreachable")
