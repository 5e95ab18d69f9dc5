"""drivergen VectorDB – in-memory embedding storage and RAG context retrieval.

- :class:`VectorStore` – Namespaced cosine-similarity store
- :class:`EmbeddingGenerator` – Sentence-transformer embedding generation
- :class:`RAGIndex` – Chunking, indexing and task-weighted retrieval
- :func:`chunk_content` – Paragraph-based content chunking
"""

from drivergen.vectordb.chunking import chunk_content, estimate_token_count
from drivergen.vectordb.embeddings import EmbeddingGenerator
from drivergen.vectordb.exceptions import EmbeddingError, VectorStoreError
from drivergen.vectordb.models import SearchResult, VectorEntry, VectorStoreConfig
from drivergen.vectordb.rag import TASK_NAMESPACES, RAGIndex, task_namespaces
from drivergen.vectordb.store import VectorStore, cosine_similarity

__all__ = [
    "TASK_NAMESPACES",
    "EmbeddingError",
    "EmbeddingGenerator",
    "RAGIndex",
    "SearchResult",
    "VectorEntry",
    "VectorStore",
    "VectorStoreConfig",
    "VectorStoreError",
    "chunk_content",
    "cosine_similarity",
    "estimate_token_count",
    "task_namespaces",
]
