"""
Chunk Repository

Stores pre-split document chunks with their embedding vectors, scoped to the
owning user. Only chunks of documents in ``indexed`` status are returned to
retrieval.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from chatstream.core.config.constants import DocumentStatus


@dataclass(frozen=True)
class StoredChunk:
    """One embedded passage with its provenance."""
    text: str
    vector: np.ndarray
    page_number: int
    filename: str


@dataclass
class StoredDocument:
    id: str
    user_id: str
    filename: str
    status: DocumentStatus = DocumentStatus.PROCESSING


class ChunkRepository(ABC):
    """Abstract chunk store."""

    @abstractmethod
    async def for_user_scope(self, user_id: str) -> list[StoredChunk]:
        """All chunks of the user's indexed documents."""

    @abstractmethod
    async def save_document(self, document: StoredDocument, chunks: list[StoredChunk]) -> None:
        """Replace a document's chunks and record its status."""

    @abstractmethod
    async def set_status(self, document_id: str, status: DocumentStatus) -> None:
        ...


class InMemoryChunkRepository(ChunkRepository):
    """Process-local chunk repository."""

    def __init__(self):
        self._lock = threading.Lock()
        self._documents: dict[str, StoredDocument] = {}
        self._chunks: dict[str, list[StoredChunk]] = {}

    async def for_user_scope(self, user_id: str) -> list[StoredChunk]:
        with self._lock:
            return [
                chunk
                for document in self._documents.values()
                if document.user_id == user_id and document.status == DocumentStatus.INDEXED
                for chunk in self._chunks.get(document.id, [])
            ]

    async def save_document(self, document: StoredDocument, chunks: list[StoredChunk]) -> None:
        with self._lock:
            self._documents[document.id] = document
            self._chunks[document.id] = list(chunks)

    async def set_status(self, document_id: str, status: DocumentStatus) -> None:
        with self._lock:
            document = self._documents.get(document_id)
            if document is not None:
                document.status = status
