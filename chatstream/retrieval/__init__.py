"""Document passage retrieval: embeddings, chunk storage and ranking."""

from chatstream.retrieval.chunk_repository import (
    ChunkRepository,
    InMemoryChunkRepository,
    StoredChunk,
    StoredDocument,
)
from chatstream.retrieval.embeddings import EmbeddingProvider, GeminiEmbeddingProvider
from chatstream.retrieval.engine import (
    DocumentChunk,
    RetrievalEngine,
    RetrievedPassage,
    cosine_similarity,
    render_context,
)

__all__ = [
    "ChunkRepository",
    "InMemoryChunkRepository",
    "StoredChunk",
    "StoredDocument",
    "EmbeddingProvider",
    "GeminiEmbeddingProvider",
    "DocumentChunk",
    "RetrievalEngine",
    "RetrievedPassage",
    "cosine_similarity",
    "render_context",
]
