"""Embedding-backed knowledge base with pluggable vector index."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Protocol

import openai
from loguru import logger
from openai import AsyncOpenAI

from screenpilot.config import Settings
from screenpilot.errors import RetrievalFailure
from screenpilot.knowledge.records import KnowledgeRecord


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


@dataclass(frozen=True)
class VectorMatch:
    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


class VectorIndex(Protocol):
    """Similarity index keyed by record id, storing metadata alongside vectors."""

    async def upsert(self, record_id: str, vector: list[float], metadata: dict[str, Any]) -> None: ...

    async def query(self, vector: list[float], top_k: int) -> list[VectorMatch]: ...

    async def fetch(self, record_id: str) -> dict[str, Any] | None: ...

    async def delete(self, record_id: str) -> None: ...


class OpenAIEmbedder:
    def __init__(self, settings: Settings, *, client: AsyncOpenAI | None = None) -> None:
        self._model = settings.embedding_model
        self._client = client or AsyncOpenAI(api_key=settings.require_openai_api_key())

    async def embed(self, text: str) -> list[float]:
        response = await self._client.embeddings.create(model=self._model, input=text, encoding_format="float")
        vector = list(response.data[0].embedding)
        logger.debug("knowledge.embed model={} dimensions={}", self._model, len(vector))
        return vector


def cosine_similarity(left: list[float], right: list[float]) -> float:
    if len(left) != len(right):
        raise ValueError(f"vector dimensions differ: {len(left)} != {len(right)}")
    dot = sum(a * b for a, b in zip(left, right, strict=True))
    norm = math.sqrt(sum(a * a for a in left)) * math.sqrt(sum(b * b for b in right))
    if norm == 0:
        return 0.0
    return dot / norm


class InMemoryVectorIndex:
    """Process-local index using cosine similarity; insertion order breaks ties."""

    def __init__(self) -> None:
        self._vectors: dict[str, list[float]] = {}
        self._metadata: dict[str, dict[str, Any]] = {}

    async def upsert(self, record_id: str, vector: list[float], metadata: dict[str, Any]) -> None:
        self._vectors[record_id] = list(vector)
        self._metadata[record_id] = dict(metadata)

    async def query(self, vector: list[float], top_k: int) -> list[VectorMatch]:
        matches = [
            VectorMatch(id=record_id, score=cosine_similarity(vector, stored), metadata=dict(self._metadata[record_id]))
            for record_id, stored in self._vectors.items()
        ]
        matches.sort(key=lambda match: match.score, reverse=True)
        return matches[:top_k]

    async def fetch(self, record_id: str) -> dict[str, Any] | None:
        metadata = self._metadata.get(record_id)
        return dict(metadata) if metadata is not None else None

    async def delete(self, record_id: str) -> None:
        self._vectors.pop(record_id, None)
        self._metadata.pop(record_id, None)

    def __len__(self) -> int:
        return len(self._vectors)


def _record_metadata(record: KnowledgeRecord) -> dict[str, Any]:
    payload = record.to_dict()
    payload.pop("id")
    return payload


class VectorKnowledgeBase:
    """Stores records as embeddings and finds the nearest one for a query.

    Every backend error surfaces as ``RetrievalFailure``.
    """

    def __init__(self, embedder: Embedder, index: VectorIndex, *, min_similarity: float | None = None) -> None:
        self._embedder = embedder
        self._index = index
        self._min_similarity = min_similarity

    async def add_record(self, record: KnowledgeRecord) -> None:
        vector = await self._embed(record.embedding_text())
        try:
            await self._index.upsert(record.id, vector, _record_metadata(record))
        except Exception as exc:
            raise RetrievalFailure(f"Failed to store record {record.id}: {exc}") from exc
        logger.info("knowledge.record.stored id={}", record.id)

    async def update_record(self, record: KnowledgeRecord) -> None:
        await self.add_record(record)

    async def get_record(self, record_id: str) -> KnowledgeRecord | None:
        try:
            metadata = await self._index.fetch(record_id)
        except Exception as exc:
            raise RetrievalFailure(f"Failed to fetch record {record_id}: {exc}") from exc
        if metadata is None or not metadata.get("name"):
            return None
        return KnowledgeRecord.from_dict({"id": record_id, **metadata})

    async def delete_record(self, record_id: str) -> None:
        try:
            await self._index.delete(record_id)
        except Exception as exc:
            raise RetrievalFailure(f"Failed to delete record {record_id}: {exc}") from exc
        logger.info("knowledge.record.deleted id={}", record_id)

    async def find(self, query: str) -> KnowledgeRecord | None:
        vector = await self._embed(query)
        try:
            matches = await self._index.query(vector, top_k=1)
        except Exception as exc:
            raise RetrievalFailure(f"Knowledge search failed: {exc}") from exc
        if not matches:
            return None
        best = matches[0]
        if self._min_similarity is not None and best.score < self._min_similarity:
            logger.debug("knowledge.vector.miss query={!r} score={:.3f}", query, best.score)
            return None
        logger.info("knowledge.vector.hit record={} score={:.3f}", best.id, best.score)
        return KnowledgeRecord.from_dict({"id": best.id, **best.metadata})

    async def _embed(self, text: str) -> list[float]:
        try:
            return await self._embedder.embed(text)
        except openai.OpenAIError as exc:
            logger.error("knowledge.embed.error error={}", exc)
            raise RetrievalFailure(f"Failed to embed text: {exc}") from exc
        except Exception as exc:
            raise RetrievalFailure(f"Failed to embed text: {exc}") from exc
