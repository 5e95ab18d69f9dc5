"""Embeddings of reference chunks and retrieval queries.

Chunks of schema examples, driver code and docs are embedded together with
the title of the document they came from, so two chunks with the same body
but different sources land in different places. Whitespace is collapsed
before encoding: indentation and blank lines in code carry no meaning for
retrieval and only eat into the model's sequence length. Vectors are
L2-normalised, which keeps the cosine scores of :class:`VectorStore`
comparable across namespaces.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Sequence

from drivergen.vectordb.exceptions import EmbeddingError

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "all-MiniLM-L6-v2"

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Collapse every whitespace run to one space and strip the ends."""
    return _WHITESPACE.sub(" ", text).strip()


def with_title(title: str, chunk: str) -> str:
    """The text embedded for *chunk* of a document titled *title*."""
    title = normalize_text(title)
    return f"{title}: {chunk}" if title else chunk


class EmbeddingGenerator:
    """Embed reference chunks and queries with a sentence-transformers model.

    The model is loaded on first use, so building a pipeline without a RAG
    index (or with an empty one) never downloads it.
    """

    def __init__(self, model_name: str = DEFAULT_EMBEDDING_MODEL, batch_size: int = 32) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._model_name = model_name
        self._batch_size = batch_size
        self._model: Any = None

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimension(self) -> int:
        """Length of the vectors this generator produces."""
        return int(self._encoder().get_sentence_embedding_dimension())

    def _encoder(self) -> Any:
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model %s", self._model_name)
            try:
                self._model = SentenceTransformer(self._model_name)
            except Exception as exc:
                raise EmbeddingError(f"Failed to load model '{self._model_name}': {exc}") from exc
        return self._model

    def _encode(self, texts: list[str]) -> list[list[float]]:
        try:
            vectors = self._encoder().encode(
                texts,
                batch_size=self._batch_size,
                convert_to_numpy=True,
                normalize_embeddings=True,
                show_progress_bar=False,
            )
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(f"Failed to embed {len(texts)} text(s): {exc}") from exc
        return [vector.tolist() for vector in vectors]

    def embed_query(self, query: str) -> list[float]:
        """Embed a retrieval query.

        Raises:
            ValueError: If *query* is blank.
            EmbeddingError: If the model can not be loaded or fails.
        """
        text = normalize_text(query)
        if not text:
            raise ValueError("Cannot embed a blank query")
        return self._encode([text])[0]

    def embed_chunks(self, chunks: Sequence[str], title: str = "") -> list[list[float]]:
        """Embed the chunks of one document, in order.

        Each chunk is prefixed with *title* before encoding.

        Raises:
            ValueError: If any chunk is blank.
            EmbeddingError: If the model can not be loaded or fails.
        """
        texts: list[str] = []
        for index, chunk in enumerate(chunks):
            text = normalize_text(chunk)
            if not text:
                raise ValueError(f"Cannot embed a blank chunk at index {index}")
            texts.append(with_title(title, text))
        if not texts:
            return []
        return self._encode(texts)

    async def aembed_query(self, query: str) -> list[float]:
        """Async :meth:`embed_query`; the encoder runs in a worker thread."""
        return await asyncio.to_thread(self.embed_query, query)

    async def aembed_chunks(self, chunks: Sequence[str], title: str = "") -> list[list[float]]:
        return await asyncio.to_thread(self.embed_chunks, chunks, title)
