"""
Embedding Providers

Map text to fixed-length vectors. ``embed_batch`` is order-preserving and
runs a bounded number of embed calls concurrently.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence

import google.generativeai as genai
import numpy as np
from google.api_core import exceptions as google_exceptions
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from chatstream.core.config.constants import DEFAULT_EMBEDDING_BATCH_CONCURRENCY, Stage
from chatstream.core.exceptions import EmbeddingError
from chatstream.core.logging import get_logger, log_stage

logger = get_logger(__name__)

TRANSIENT_EMBEDDING_ERRORS = (
    google_exceptions.ResourceExhausted,
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
)


class EmbeddingProvider(ABC):
    """Abstract text embedding function."""

    def __init__(self, batch_concurrency: int = DEFAULT_EMBEDDING_BATCH_CONCURRENCY):
        self.batch_concurrency = batch_concurrency

    @abstractmethod
    async def embed(self, text: str) -> np.ndarray:
        """
        Embed a query text.

        Raises:
            EmbeddingError: If the backend fails
        """

    async def embed_document(self, text: str) -> np.ndarray:
        """Embed a passage for storage. Defaults to the query embedding."""
        return await self.embed(text)

    async def embed_batch(self, texts: Sequence[str]) -> list[np.ndarray]:
        """
        Embed many passages, ``batch_concurrency`` at a time.

        Results are in input order.
        """
        vectors: list[np.ndarray] = []
        for start in range(0, len(texts), self.batch_concurrency):
            batch = texts[start:start + self.batch_concurrency]
            vectors.extend(await asyncio.gather(*(self.embed_document(text) for text in batch)))
        return vectors


class GeminiEmbeddingProvider(EmbeddingProvider):
    """
    Gemini embeddings via ``genai.embed_content_async``.

    Transient API errors are retried with exponential backoff and jitter;
    anything else, or running out of attempts, raises EmbeddingError.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        max_retries: int = 3,
        batch_concurrency: int = DEFAULT_EMBEDDING_BATCH_CONCURRENCY,
    ):
        super().__init__(batch_concurrency)
        genai.configure(api_key=api_key)
        self.model = model
        self.max_retries = max_retries
        self.wait = wait_exponential_jitter(initial=0.5, max=8.0)

    async def _embed(self, text: str, task_type: str) -> np.ndarray:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=self.wait,
                retry=retry_if_exception_type(TRANSIENT_EMBEDDING_ERRORS),
                reraise=True,
            ):
                with attempt:
                    result = await genai.embed_content_async(
                        model=self.model, content=text, task_type=task_type
                    )
        except google_exceptions.GoogleAPIError as e:
            log_stage(logger, Stage.EMBEDDING, "Embedding failed", level="warning",
                      model=self.model, task_type=task_type, error=str(e))
            raise EmbeddingError.from_exception(e, model=self.model) from e
        return np.asarray(result["embedding"], dtype=np.float64)

    async def embed(self, text: str) -> np.ndarray:
        return await self._embed(text, "retrieval_query")

    async def embed_document(self, text: str) -> np.ndarray:
        return await self._embed(text, "retrieval_document")
