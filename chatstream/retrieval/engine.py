"""
Retrieval Engine

Brute-force nearest-neighbour search over a user's embedded passages.

Algorithm:
    1. Embed the query
    2. Load every chunk of the user's indexed documents
    3. Score each chunk by cosine similarity to the query
    4. Stable sort descending, keep the first ``top_k``
    5. Round relevance to two decimals for display

The scan is O(n) per query; an approximate index can replace it behind the
same ``query()`` contract.
"""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from chatstream.core.config.constants import (
    DEFAULT_RAG_TOP_K,
    RAG_PASSAGE_SEPARATOR,
    RAG_SYSTEM_PROMPT,
    RELEVANCE_DECIMALS,
    DocumentStatus,
    Stage,
)
from chatstream.core.exceptions import EmbeddingError
from chatstream.core.logging import get_logger, log_stage
from chatstream.retrieval.chunk_repository import ChunkRepository, StoredChunk, StoredDocument
from chatstream.retrieval.embeddings import EmbeddingProvider

logger = get_logger(__name__)


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """
    dot(a, b) / (|a| * |b|), or 0.0 when either norm is zero.

    Raises:
        ValueError: If the vectors differ in length
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Vector dimensions differ: {a.shape} vs {b.shape}")
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


@dataclass(frozen=True)
class RetrievedPassage:
    text: str
    source_name: str
    page_number: int
    similarity_score: float


@dataclass(frozen=True)
class DocumentChunk:
    """A pre-split chunk awaiting embedding."""
    text: str
    page_number: int


def render_context(passages: Sequence[RetrievedPassage]) -> str:
    """
    Render passages as the retrieval-augmented system prompt.

    Each passage is headed ``[Document i: filename, Page p]``.
    """
    blocks = [
        f"[Document {i}: {passage.source_name}, Page {passage.page_number}]\n{passage.text}"
        for i, passage in enumerate(passages, start=1)
    ]
    context = RAG_PASSAGE_SEPARATOR.join(blocks)
    return f"{RAG_SYSTEM_PROMPT}\n\n--- Retrieved Documents ---\n{context}"


class RetrievalEngine:
    """
    Ranks a user's stored passages against a query.

    Usage:
        engine = RetrievalEngine(embedder, repository)
        passages = await engine.query("What is the refund policy?", user_id)
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        repository: ChunkRepository,
        top_k: int = DEFAULT_RAG_TOP_K,
    ):
        self.embedder = embedder
        self.repository = repository
        self.top_k = top_k

    async def query(
        self, text: str, user_scope: str, top_k: int | None = None
    ) -> list[RetrievedPassage]:
        """
        Return the ``top_k`` most similar passages, highest score first.

        Ties keep repository order. Chunks whose vector length differs from
        the query's are skipped.
        """
        top_k = self.top_k if top_k is None else top_k
        query_vector = np.asarray(await self.embedder.embed(text), dtype=np.float64)
        chunks = await self.repository.for_user_scope(user_scope)

        scored: list[tuple[float, StoredChunk]] = []
        skipped = 0
        for chunk in chunks:
            vector = np.asarray(chunk.vector, dtype=np.float64)
            if vector.shape != query_vector.shape:
                skipped += 1
                continue
            scored.append((cosine_similarity(query_vector, vector), chunk))

        if skipped:
            log_stage(logger, Stage.RETRIEVAL, "Skipped chunks with mismatched dimensions",
                      level="warning", skipped=skipped, expected=int(query_vector.shape[0]))

        # sorted() is stable, so equal scores keep repository order
        ranked = sorted(scored, key=lambda item: item[0], reverse=True)[:top_k]

        log_stage(logger, Stage.RETRIEVAL, "Retrieval complete",
                  candidates=len(scored), returned=len(ranked))

        return [
            RetrievedPassage(
                text=chunk.text,
                source_name=chunk.filename,
                page_number=chunk.page_number,
                similarity_score=round(score, RELEVANCE_DECIMALS),
            )
            for score, chunk in ranked
        ]

    async def index_document(
        self,
        user_id: str,
        filename: str,
        chunks: Sequence[DocumentChunk],
        document_id: str | None = None,
    ) -> str:
        """
        Embed pre-split chunks and make the document searchable.

        The document is ``processing`` while embedding runs, ``indexed`` on
        success and ``failed`` if embedding fails.

        Raises:
            EmbeddingError: If any chunk cannot be embedded
        """
        document = StoredDocument(id=document_id or str(uuid.uuid4()), user_id=user_id,
                                  filename=filename)
        await self.repository.save_document(document, [])

        try:
            vectors = await self.embedder.embed_batch([chunk.text for chunk in chunks])
        except EmbeddingError:
            await self.repository.set_status(document.id, DocumentStatus.FAILED)
            log_stage(logger, Stage.EMBEDDING, "Document indexing failed", level="warning",
                      document_id=document.id, filename=filename)
            raise

        stored = [
            StoredChunk(text=chunk.text, vector=vector, page_number=chunk.page_number,
                        filename=filename)
            for chunk, vector in zip(chunks, vectors)
        ]
        document.status = DocumentStatus.INDEXED
        await self.repository.save_document(document, stored)

        log_stage(logger, Stage.EMBEDDING, "Document indexed",
                  document_id=document.id, filename=filename, chunk_count=len(stored))
        return document.id
