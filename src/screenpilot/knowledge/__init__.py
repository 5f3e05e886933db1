"""Knowledge lookup for instruction templates."""

from screenpilot.knowledge.records import KnowledgeRecord, load_corpus
from screenpilot.knowledge.retriever import MIN_RELEVANCE_SCORE, KnowledgeRetriever, KnowledgeSource, score
from screenpilot.knowledge.vector import (
    Embedder,
    InMemoryVectorIndex,
    OpenAIEmbedder,
    VectorIndex,
    VectorKnowledgeBase,
    VectorMatch,
)

__all__ = [
    "MIN_RELEVANCE_SCORE",
    "Embedder",
    "InMemoryVectorIndex",
    "KnowledgeRecord",
    "KnowledgeRetriever",
    "KnowledgeSource",
    "OpenAIEmbedder",
    "VectorIndex",
    "VectorKnowledgeBase",
    "VectorMatch",
    "load_corpus",
    "score",
]
