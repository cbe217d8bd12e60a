"""
Name: Retrieval Engine Unit Tests

Responsibilities:
  - Test cosine similarity bounds and edge cases
  - Test stage-1 filtering/ordering and monotonicity in min_similarity
  - Test stage-2 LLM rerank (hybrid, rerank-only, fallback)
  - End-to-end chunk + embed + search round trip
"""

import math

import pytest
from doubles import (
    FailingEmbeddingGateway,
    KeywordEmbeddingGateway,
    PrefixWordsEmbeddingGateway,
    ScriptedLLMGateway,
    text_response,
)

from assistant_core.application.rag_index import DocumentIndex
from assistant_core.application.reranker import LLMReranker
from assistant_core.application.retrieval import RetrievalEngine, cosine_similarity
from assistant_core.crosscutting.exceptions import (
    ConfigurationError,
    EmbeddingDimensionMismatchError,
    GatewayError,
    InvalidQueryError,
    RateLimited,
)
from assistant_core.domain.value_objects import SearchConfig
from assistant_core.infrastructure.text.chunker import TextChunker

_VOCAB = ("python", "rust", "cooking", "garden")


async def _engine(small_chunker, reranker=None, gateway=None):
    gateway = gateway or KeywordEmbeddingGateway(_VOCAB)
    index = DocumentIndex(small_chunker, gateway)
    await index.add_document("Python", "python rust")
    await index.add_document("Cooking", "cooking garden")
    await index.add_document("Python only", "python")
    return RetrievalEngine(index, gateway, reranker), gateway


@pytest.mark.unit
class TestCosineSimilarity:
    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0

    def test_zero_norm_is_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_result_is_bounded(self):
        value = cosine_similarity([1e-8, 3.0, 7.5], [2e-8, 6.0, 15.0])
        assert -1.0 <= value <= 1.0

    def test_dimension_mismatch(self):
        with pytest.raises(EmbeddingDimensionMismatchError):
            cosine_similarity([1.0], [1.0, 0.0])


@pytest.mark.unit
class TestVectorSearch:
    @pytest.mark.asyncio
    async def test_empty_index_returns_empty_without_embedding(self, small_chunker):
        gateway = KeywordEmbeddingGateway(_VOCAB)
        engine = RetrievalEngine(DocumentIndex(small_chunker, gateway), gateway)

        assert await engine.search("python") == []
        assert gateway.embed_calls == []

    @pytest.mark.asyncio
    async def test_blank_query_rejected(self, small_chunker):
        engine, gateway = await _engine(small_chunker)

        with pytest.raises(InvalidQueryError):
            await engine.search("   ")
        assert gateway.embed_calls == []

    @pytest.mark.asyncio
    async def test_results_sorted_by_similarity(self, small_chunker):
        engine, _ = await _engine(small_chunker)

        results = await engine.search("python", SearchConfig(top_k=5))

        assert [r.document_title for r in results] == ["Python only", "Python", "Cooking"]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[1].similarity == pytest.approx(1 / math.sqrt(2))
        assert results[2].similarity == 0.0
        assert all(r.rerank_score is None for r in results)

    @pytest.mark.asyncio
    async def test_top_k_limits_results(self, small_chunker):
        engine, _ = await _engine(small_chunker)

        results = await engine.search("python", SearchConfig(top_k=1))

        assert len(results) == 1
        assert results[0].document_title == "Python only"

    @pytest.mark.asyncio
    async def test_monotonic_in_min_similarity(self, small_chunker):
        """R: Raising the threshold never adds results."""
        engine, _ = await _engine(small_chunker)
        previous = None

        for threshold in (-1.0, 0.0, 0.5, 0.8, 1.0):
            ids = {
                r.chunk.chunk_id
                for r in await engine.search(
                    "python", SearchConfig(top_k=10, min_similarity=threshold)
                )
            }
            if previous is not None:
                assert ids <= previous
            previous = ids

    @pytest.mark.asyncio
    async def test_query_dimension_mismatch(self, small_chunker):
        engine, _ = await _engine(small_chunker)
        engine._embeddings = KeywordEmbeddingGateway(["python"])

        with pytest.raises(EmbeddingDimensionMismatchError):
            await engine.search("python")

    @pytest.mark.asyncio
    async def test_gateway_error_propagates(self, small_chunker):
        engine, _ = await _engine(small_chunker)
        engine._embeddings = FailingEmbeddingGateway()

        with pytest.raises(GatewayError):
            await engine.search("python")


@pytest.mark.unit
class TestRerank:
    @pytest.mark.asyncio
    async def test_rerank_requested_without_reranker(self, small_chunker):
        engine, _ = await _engine(small_chunker)
        assert engine.supports_reranking is False

        with pytest.raises(ConfigurationError):
            await engine.search("python", SearchConfig(enable_reranking=True))

    @pytest.mark.asyncio
    async def test_rerank_step_checks_reranker(self, small_chunker):
        """R: The rerank step raises even when reached without search()."""
        engine, _ = await _engine(small_chunker)

        with pytest.raises(ConfigurationError):
            await engine._rerank("python", [], SearchConfig(enable_reranking=True))

    @pytest.mark.asyncio
    async def test_rerank_only_ordering(self, small_chunker):
        """R: Rerank-only scoring can invert the cosine order."""

        def _score(messages):
            prompt = messages[0].text
            return text_response("0.9" if "python rust" in prompt else "0.2")

        llm = ScriptedLLMGateway(responder=_score)
        engine, _ = await _engine(small_chunker, reranker=LLMReranker(llm))

        results = await engine.search(
            "python",
            SearchConfig(
                top_k=2,
                min_similarity=0.5,
                enable_reranking=True,
                rerank_top_n=10,
                use_hybrid_scoring=False,
            ),
        )

        assert [r.document_title for r in results] == ["Python", "Python only"]
        assert results[0].rerank_score == pytest.approx(0.9)
        assert len(llm.complete_calls) == 2

    @pytest.mark.asyncio
    async def test_hybrid_scoring_and_rerank_threshold(self, small_chunker):
        def _score(messages):
            prompt = messages[0].text
            return text_response("0.5" if "python rust" in prompt else "1.0")

        engine, _ = await _engine(
            small_chunker, reranker=LLMReranker(ScriptedLLMGateway(responder=_score))
        )

        results = await engine.search(
            "python",
            SearchConfig(
                top_k=5,
                min_similarity=0.5,
                enable_reranking=True,
                rerank_top_n=10,
                min_rerank_score=0.6,
            ),
        )

        assert [r.document_title for r in results] == ["Python only"]
        assert results[0].rerank_score == 1.0

    @pytest.mark.asyncio
    async def test_gateway_failure_falls_back_per_candidate(self, small_chunker):
        llm = ScriptedLLMGateway(responder=lambda messages: RateLimited())
        engine, _ = await _engine(
            small_chunker, reranker=LLMReranker(llm, fallback_score=0.3)
        )

        results = await engine.search(
            "python",
            SearchConfig(top_k=5, min_similarity=0.5, enable_reranking=True),
        )

        assert len(results) == 2
        assert all(r.rerank_score == 0.3 for r in results)
        assert results[0].document_title == "Python only"


@pytest.mark.unit
class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_first_sentence_finds_first_chunk(self):
        sentences = [
            f"Sentence number {i} talks about topic {i} in detail." for i in range(60)
        ]
        text = " ".join(sentences)[:2000]
        gateway = PrefixWordsEmbeddingGateway(words=8)
        index = DocumentIndex(TextChunker(500, 50), gateway)
        await index.add_document("Long", text)
        engine = RetrievalEngine(index, gateway)

        assert len(index.snapshot().embeddings) >= 4

        results = await engine.search(sentences[0], SearchConfig(top_k=3))

        assert results[0].chunk.chunk_index == 0
        assert results[0].similarity > 0.9
