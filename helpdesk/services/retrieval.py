from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import structlog

from helpdesk.core.config import settings
from helpdesk.models import DocumentChunk
from helpdesk.services.llm_clients import EmbeddingClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RetrievedChunk:
    chunk_id: str
    document_id: str
    text: str
    similarity: float


def cosine_similarity(
    first: Sequence[float] | None, second: Sequence[float] | None
) -> float:
    if not first or not second or len(first) != len(second):
        return 0.0
    a = np.asarray(first, dtype=float)
    b = np.asarray(second, dtype=float)
    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return 0.0
    return float(np.dot(a, b) / norm)


def similarity_scores(
    query: Sequence[float], embeddings: Sequence[Sequence[float] | None]
) -> np.ndarray:
    """Cosine similarity of the query against each embedding; unusable vectors score 0."""
    query_vector = np.asarray(query, dtype=float)
    scores = np.zeros(len(embeddings))
    usable = [
        index
        for index, embedding in enumerate(embeddings)
        if embedding and len(embedding) == len(query_vector)
    ]
    query_norm = np.linalg.norm(query_vector)
    if not usable or query_norm == 0:
        return scores
    matrix = np.asarray([embeddings[index] for index in usable], dtype=float)
    norms = np.linalg.norm(matrix, axis=1) * query_norm
    dots = matrix @ query_vector
    scores[usable] = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
    return scores


class RetrievalIndex:
    def __init__(self, embedder: EmbeddingClient | None) -> None:
        self.embedder = embedder

    async def search(
        self,
        query: str,
        chunks: Iterable[DocumentChunk],
        max_results: int | None = None,
        min_similarity: float | None = None,
    ) -> list[RetrievedChunk]:
        max_results = settings.RETRIEVAL_MAX_RESULTS if max_results is None else max_results
        min_similarity = (
            settings.RETRIEVAL_MIN_SIMILARITY if min_similarity is None else min_similarity
        )
        chunks = list(chunks)
        if self.embedder is None or not chunks or not query.strip():
            return []

        try:
            query_embedding = await self.embedder.embed(query)
        except Exception as exc:
            logger.warning("query_embedding_failed", error=str(exc))
            return []
        if not query_embedding:
            return []

        scores = similarity_scores(query_embedding, [chunk.embedding for chunk in chunks])
        ranked = np.argsort(-scores, kind="stable")
        results = [
            RetrievedChunk(
                chunk_id=chunks[index].id,
                document_id=chunks[index].document_id,
                text=chunks[index].text,
                similarity=float(scores[index]),
            )
            for index in ranked
            if scores[index] > min_similarity
        ][:max_results]
        logger.info(
            "retrieval_completed",
            candidates=len(chunks),
            matched=len(results),
            top_similarity=round(results[0].similarity, 4) if results else None,
        )
        return results
