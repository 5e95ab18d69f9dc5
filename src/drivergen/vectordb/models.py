"""Data models for the VectorDB module."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from drivergen.vectordb.embeddings import DEFAULT_EMBEDDING_MODEL


class VectorStoreConfig(BaseModel):
    """Configuration for the RAG index and its embedding model."""

    embedding_model: str = Field(
        default=DEFAULT_EMBEDDING_MODEL,
        description="Sentence-transformer model for embeddings",
    )
    max_tokens_per_chunk: int = Field(
        default=8000,
        ge=1,
        description="Maximum whitespace-delimited tokens per indexed chunk",
    )
    results_per_namespace: int = Field(
        default=2,
        ge=1,
        description="Matches taken from each namespace when building context",
    )


class VectorEntry(BaseModel):
    """A stored vector with its document metadata."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    id: str
    title: str = ""
    content: str = ""
    related_content: str = ""
    vector: list[float] = Field(default_factory=list)


class SearchResult(BaseModel):
    """A single result from a similarity search."""

    id: str = Field(..., description="Identifier of the matched entry")
    score: float = Field(..., description="Cosine similarity (higher is more similar)")
    title: str = Field(default="", description="Title of the matched document")
    content: str = Field(default="", description="The matched document text")
    related_content: str = Field(default="", description="Companion text stored with the match")
