"""screenpilot - vision-language agent orchestration for computer use."""

from .engine import AgentLoop, LoopLimits
from .knowledge import KnowledgeRecord, KnowledgeRetriever
from .planning import InstructionDecomposer
from .progress import AgentStatus, ProgressChannel, ProgressSnapshot

__version__ = "0.1.0"

__all__ = [
    "AgentLoop",
    "AgentStatus",
    "InstructionDecomposer",
    "KnowledgeRecord",
    "KnowledgeRetriever",
    "LoopLimits",
    "ProgressChannel",
    "ProgressSnapshot",
]
