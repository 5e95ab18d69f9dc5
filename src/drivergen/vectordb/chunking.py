"""Paragraph-based content chunking for the RAG index."""

from __future__ import annotations


def estimate_token_count(text: str) -> int:
    """Approximate token count as the number of whitespace-separated words."""
    return len(text.split())


def chunk_content(content: str, max_tokens_per_chunk: int = 8000) -> list[str]:
    """Split *content* into chunks of at most *max_tokens_per_chunk* tokens.

    Paragraphs (separated by blank lines) are packed together until the next
    one would overflow the chunk. A paragraph that is larger than the limit on
    its own is split on word boundaries.
    """
    if max_tokens_per_chunk <= 0:
        raise ValueError("max_tokens_per_chunk must be positive")

    paragraphs = [p.strip() for p in content.split("\n\n") if p.strip()]
    chunks: list[str] = []
    current: list[str] = []
    current_tokens = 0

    for paragraph in paragraphs:
        tokens = estimate_token_count(paragraph)

        if current_tokens + tokens > max_tokens_per_chunk and current:
            chunks.append("\n\n".join(current))
            current, current_tokens = [], 0

        if tokens > max_tokens_per_chunk:
            words = paragraph.split()
            for start in range(0, len(words), max_tokens_per_chunk):
                chunks.append(" ".join(words[start:start + max_tokens_per_chunk]))
            continue

        current.append(paragraph)
        current_tokens += tokens

    if current:
        chunks.append("\n\n".join(current))

    return chunks
