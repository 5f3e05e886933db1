from __future__ import annotations

import pytest

from screenpilot.errors import RetrievalFailure
from screenpilot.knowledge.records import KnowledgeRecord
from screenpilot.knowledge.vector import InMemoryVectorIndex, VectorKnowledgeBase, cosine_similarity

SWAP = KnowledgeRecord(id="swap", name="Token Swap", description="Swap tokens", instructions=("Open dex",))
LOGIN = KnowledgeRecord(id="login", name="Login", description="Sign in to the portal", tags=("auth",))


class KeywordEmbedder:
    def __init__(self) -> None:
        self.texts: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.texts.append(text)
        lowered = text.lower()
        return [1.0 if "swap" in lowered else 0.0, 1.0 if "sign" in lowered else 0.0, 0.1]


class BrokenEmbedder:
    async def embed(self, text: str) -> list[float]:
        raise RuntimeError("embedding service down")


class BrokenIndex(InMemoryVectorIndex):
    async def query(self, vector, top_k):
        raise ConnectionError("index unreachable")


def test_cosine_similarity() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    with pytest.raises(ValueError):
        cosine_similarity([1.0], [1.0, 2.0])


@pytest.mark.asyncio
async def test_find_returns_nearest_record() -> None:
    embedder = KeywordEmbedder()
    base = VectorKnowledgeBase(embedder, InMemoryVectorIndex())
    await base.add_record(SWAP)
    await base.add_record(LOGIN)

    assert await base.find("please swap my coins") == SWAP
    assert await base.find("sign me in") == LOGIN
    assert embedder.texts[0] == "Token Swap Swap tokens Open dex"


@pytest.mark.asyncio
async def test_find_respects_min_similarity() -> None:
    base = VectorKnowledgeBase(KeywordEmbedder(), InMemoryVectorIndex(), min_similarity=0.9)
    await base.add_record(SWAP)

    assert await base.find("sign in") is None


@pytest.mark.asyncio
async def test_find_on_empty_index() -> None:
    base = VectorKnowledgeBase(KeywordEmbedder(), InMemoryVectorIndex())

    assert await base.find("swap") is None


@pytest.mark.asyncio
async def test_record_lifecycle() -> None:
    index = InMemoryVectorIndex()
    base = VectorKnowledgeBase(KeywordEmbedder(), index)
    await base.add_record(LOGIN)

    assert await base.get_record("login") == LOGIN

    updated = KnowledgeRecord(id="login", name="Login", description="Sign in with SSO", tags=("auth",))
    await base.update_record(updated)
    assert await base.get_record("login") == updated
    assert len(index) == 1

    await base.delete_record("login")
    assert await base.get_record("login") is None
    assert len(index) == 0


@pytest.mark.asyncio
async def test_embedder_errors_become_retrieval_failures() -> None:
    base = VectorKnowledgeBase(BrokenEmbedder(), InMemoryVectorIndex())

    with pytest.raises(RetrievalFailure, match="embed") as exc_info:
        await base.find("swap")
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_index_errors_become_retrieval_failures() -> None:
    base = VectorKnowledgeBase(KeywordEmbedder(), BrokenIndex())

    with pytest.raises(RetrievalFailure, match="search failed"):
        await base.find("swap")
