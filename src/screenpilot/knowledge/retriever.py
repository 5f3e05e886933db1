"""Keyword relevance scoring over a small corpus of instruction templates."""

from __future__ import annotations

from collections.abc import Awaitable, Sequence
from typing import Protocol

from loguru import logger

from screenpilot.knowledge.records import KnowledgeRecord

MIN_RELEVANCE_SCORE = 20
MIN_WORD_LENGTH = 3

FULL_NAME_MATCH = 100
NAME_WORD_MATCH = 10
TAG_IN_QUERY = 15
TAG_WORD_OVERLAP = 5
DESCRIPTION_WORD_MATCH = 3


class KnowledgeSource(Protocol):
    """Anything that finds the best record for a query, synchronously or not."""

    def find(self, query: str) -> KnowledgeRecord | None | Awaitable[KnowledgeRecord | None]: ...


def query_words(normalized_query: str) -> list[str]:
    return [word for word in normalized_query.split() if len(word) >= MIN_WORD_LENGTH]


def score(record: KnowledgeRecord, query: str) -> int:
    normalized = query.lower()
    words = query_words(normalized)
    name = record.name.lower()
    description = record.description.lower()

    total = 0
    if normalized in name:
        total += FULL_NAME_MATCH
    total += NAME_WORD_MATCH * sum(1 for word in words if word in name)

    for tag in record.tags:
        tag = tag.lower()
        if tag in normalized:
            total += TAG_IN_QUERY
        total += TAG_WORD_OVERLAP * sum(1 for word in words if word in tag or tag in word)

    total += DESCRIPTION_WORD_MATCH * sum(1 for word in words if word in description)
    return total


class KnowledgeRetriever:
    """Returns the best-scoring record above the relevance threshold."""

    def __init__(self, corpus: Sequence[KnowledgeRecord], *, min_score: int = MIN_RELEVANCE_SCORE) -> None:
        self._corpus = tuple(corpus)
        self._min_score = min_score

    @property
    def corpus(self) -> tuple[KnowledgeRecord, ...]:
        return self._corpus

    def rank(self, query: str) -> list[tuple[KnowledgeRecord, int]]:
        scored = [(record, score(record, query)) for record in self._corpus]
        # sorted() is stable, so equal scores keep corpus order.
        return sorted(scored, key=lambda item: item[1], reverse=True)

    def find(self, query: str) -> KnowledgeRecord | None:
        ranked = self.rank(query)
        if not ranked:
            return None
        best, best_score = ranked[0]
        if best_score <= self._min_score:
            logger.debug("knowledge.find.miss query={!r} best_score={}", query, best_score)
            return None
        logger.info("knowledge.find.hit record={} score={}", best.id, best_score)
        return best
