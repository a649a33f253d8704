import asyncio

from fakes import KeywordEmbedder
from helpdesk.models import DocumentChunk
from helpdesk.services.retrieval import RetrievalIndex, cosine_similarity, similarity_scores


def _chunk(chunk_id: str, text: str, embedding) -> DocumentChunk:
    return DocumentChunk(id=chunk_id, document_id="doc-1", index=0, text=text, embedding=embedding)


def test_cosine_similarity_is_symmetric_and_one_for_self() -> None:
    first = [0.2, 0.5, 0.1]
    second = [0.9, 0.1, 0.4]

    assert cosine_similarity(first, second) == cosine_similarity(second, first)
    assert abs(cosine_similarity(first, first) - 1.0) < 1e-9


def test_cosine_similarity_degenerate_inputs_score_zero() -> None:
    assert cosine_similarity([1.0, 2.0], [1.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
    assert cosine_similarity(None, [1.0]) == 0.0
    assert cosine_similarity([], []) == 0.0


def test_search_ranks_by_similarity_and_drops_weak_matches() -> None:
    embedder = KeywordEmbedder()
    chunks = [
        _chunk("battery", "battery charge", [1.0, 1.0, 0.0, 0.0, 0.0, 0.0]),
        _chunk("bluetooth", "bluetooth pairing", [0.0, 0.0, 1.0, 0.0, 0.0, 0.0]),
        _chunk("mixed", "battery and screen", [1.0, 0.0, 0.0, 0.0, 1.0, 0.0]),
        _chunk("unembedded", "no vector yet", None),
    ]

    results = asyncio.run(
        RetrievalIndex(embedder).search(
            "my battery will not charge", chunks, max_results=3, min_similarity=0.3
        )
    )

    assert [item.chunk_id for item in results] == ["battery", "mixed"]
    assert results[0].similarity > results[1].similarity


def test_search_caps_result_count() -> None:
    embedder = KeywordEmbedder()
    chunks = [_chunk(str(i), "battery", [1.0, 0.0, 0.0, 0.0, 0.0, 0.0]) for i in range(5)]

    results = asyncio.run(RetrievalIndex(embedder).search("battery", chunks, max_results=2))

    assert len(results) == 2


def test_search_without_embedder_returns_nothing() -> None:
    chunks = [_chunk("a", "battery", [1.0, 0.0, 0.0, 0.0, 0.0, 0.0])]

    assert asyncio.run(RetrievalIndex(None).search("battery", chunks)) == []


def test_batch_scores_zero_out_unusable_vectors() -> None:
    scores = similarity_scores(
        [1.0, 0.0],
        [[2.0, 0.0], [0.0, 0.0], [1.0, 0.0, 0.0], None, [1.0, 1.0]],
    )

    assert scores[0] == 1.0
    assert list(scores[1:4]) == [0.0, 0.0, 0.0]
    assert abs(scores[4] - cosine_similarity([1.0, 0.0], [1.0, 1.0])) < 1e-12
