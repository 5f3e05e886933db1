"""Goal planning: oracle access and instruction decomposition."""

from screenpilot.planning.decomposer import InstructionDecomposer, build_instruction_prompt
from screenpilot.planning.oracle import (
    ChatMessage,
    OpenAIReasoningOracle,
    OracleRequest,
    OracleResponse,
    ReasoningOracle,
)

__all__ = [
    "ChatMessage",
    "InstructionDecomposer",
    "OpenAIReasoningOracle",
    "OracleRequest",
    "OracleResponse",
    "ReasoningOracle",
    "build_instruction_prompt",
]
