from __future__ import annotations

import pytest

from screenpilot.errors import EmptyGoalFailure, ReasoningFailure, RetrievalFailure
from screenpilot.knowledge.records import KnowledgeRecord
from screenpilot.knowledge.retriever import KnowledgeRetriever
from screenpilot.planning.decomposer import (
    FIRST_PRINCIPLES_GUIDANCE,
    REFERENCE_GUIDELINES,
    InstructionDecomposer,
    build_instruction_prompt,
)
from screenpilot.planning.oracle import OracleRequest, OracleResponse

RAYDIUM = KnowledgeRecord(
    id="raydium-swap",
    name="Raydium Token Swap",
    description="Exchange assets on a Solana DEX",
    instructions=("Open https://raydium.io/swap", "Click 'Connect Wallet'", "Enter 0.5 in the From field"),
    tags=("tokens", "solana"),
)


class FakeOracle:
    def __init__(self, *outcomes: str | Exception) -> None:
        self._outcomes = list(outcomes)
        self.requests: list[OracleRequest] = []

    async def invoke(self, request: OracleRequest) -> OracleResponse:
        self.requests.append(request)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return OracleResponse(prediction=outcome)


class AsyncRetriever:
    def __init__(self, record: KnowledgeRecord | None) -> None:
        self._record = record
        self.queries: list[str] = []

    async def find(self, query: str) -> KnowledgeRecord | None:
        self.queries.append(query)
        return self._record


@pytest.mark.asyncio
async def test_unmatched_goal_uses_first_principles_prompt_and_keeps_lines_verbatim() -> None:
    oracle = FakeOracle("Open the web browser\n\nGo to example.com\n")
    decomposer = InstructionDecomposer(oracle, KnowledgeRetriever([RAYDIUM]), initial_delay=0)

    instructions = await decomposer.decompose("Open a browser and go to example.com")

    assert instructions == ["Open the web browser", "", "Go to example.com", ""]
    [request] = oracle.requests
    system, user = request.messages
    assert system.role == "system"
    assert FIRST_PRINCIPLES_GUIDANCE in system.content
    assert REFERENCE_GUIDELINES not in system.content
    assert user.role == "user"
    assert user.content == "Open a browser and go to example.com"


@pytest.mark.asyncio
async def test_matched_goal_embeds_reference_steps() -> None:
    oracle = FakeOracle("Open https://raydium.io/swap\nClick 'Connect Wallet'")
    decomposer = InstructionDecomposer(oracle, KnowledgeRetriever([RAYDIUM]), initial_delay=0)

    await decomposer.decompose("Raydium token swap")

    system = oracle.requests[0].messages[0].content
    assert "\n".join(RAYDIUM.instructions) in system
    assert "follow VERY closely" in system
    assert REFERENCE_GUIDELINES in system
    assert FIRST_PRINCIPLES_GUIDANCE not in system


@pytest.mark.asyncio
async def test_awaitable_retriever_is_supported() -> None:
    retriever = AsyncRetriever(RAYDIUM)
    oracle = FakeOracle("step")
    decomposer = InstructionDecomposer(oracle, retriever, initial_delay=0)

    assert await decomposer.decompose("swap") == ["step"]
    assert retriever.queries == ["swap"]
    assert RAYDIUM.instructions[0] in oracle.requests[0].messages[0].content


@pytest.mark.asyncio
async def test_without_retriever_prompt_is_first_principles() -> None:
    oracle = FakeOracle("a\nb")

    assert await InstructionDecomposer(oracle).decompose("anything") == ["a", "b"]
    assert oracle.requests[0].messages[0].content == build_instruction_prompt(None)


@pytest.mark.asyncio
async def test_overloaded_oracle_is_retried() -> None:
    oracle = FakeOracle(
        ReasoningFailure("busy", status_code=503),
        ReasoningFailure("busy", status_code=503),
        "done",
    )
    decomposer = InstructionDecomposer(oracle, max_attempts=3, initial_delay=0)

    assert await decomposer.decompose("goal") == ["done"]
    assert len(oracle.requests) == 3


@pytest.mark.asyncio
async def test_overload_gives_up_after_max_attempts() -> None:
    oracle = FakeOracle(*(ReasoningFailure("busy", status_code=503) for _ in range(3)))
    decomposer = InstructionDecomposer(oracle, max_attempts=2, initial_delay=0)

    with pytest.raises(ReasoningFailure) as exc_info:
        await decomposer.decompose("goal")
    assert exc_info.value.overloaded
    assert len(oracle.requests) == 2


@pytest.mark.asyncio
async def test_other_oracle_failures_are_not_retried() -> None:
    oracle = FakeOracle(ReasoningFailure("bad request", status_code=400), "unused")
    decomposer = InstructionDecomposer(oracle, initial_delay=0)

    with pytest.raises(ReasoningFailure, match="bad request"):
        await decomposer.decompose("goal")
    assert len(oracle.requests) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("goal", ["", "   ", "\n"])
async def test_blank_goal_is_rejected(goal: str) -> None:
    oracle = FakeOracle("never")

    with pytest.raises(EmptyGoalFailure):
        await InstructionDecomposer(oracle).decompose(goal)
    assert oracle.requests == []


class FailingRetriever:
    async def find(self, query: str) -> KnowledgeRecord | None:
        raise RetrievalFailure("index unreachable")


@pytest.mark.asyncio
async def test_retrieval_failure_propagates_before_oracle_call() -> None:
    oracle = FakeOracle("never")
    decomposer = InstructionDecomposer(oracle, FailingRetriever(), initial_delay=0)

    with pytest.raises(RetrievalFailure, match="index unreachable"):
        await decomposer.decompose("swap tokens")
    assert oracle.requests == []
