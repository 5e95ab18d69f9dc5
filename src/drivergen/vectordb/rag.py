"""Retrieval-augmented context for the generation agents.

:class:`RAGIndex` chunks and embeds reference material (schema examples,
driver code, platform docs) into a :class:`VectorStore` and, at generation
time, pulls the best matches from the namespaces relevant to a task.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Mapping

from drivergen.vectordb.chunking import chunk_content
from drivergen.vectordb.embeddings import EmbeddingGenerator
from drivergen.vectordb.models import SearchResult, VectorStoreConfig
from drivergen.vectordb.store import VectorStore

logger = logging.getLogger(__name__)

# Namespace weights per task. Matches are scaled by the weight of the
# namespace they come from.
TASK_NAMESPACES: dict[str, dict[str, float]] = {
    "api_analysis": {"membrane_docs": 0.3, "driver_code": 0.3, "schema_examples": 0.4},
    "schema_design": {"membrane_docs": 0.3, "schema_examples": 0.4, "driver_code": 0.3},
    "code_generation": {"membrane_docs": 0.2, "driver_code": 0.5, "schema_examples": 0.3},
    "default": {"membrane_docs": 0.4, "driver_code": 0.6},
}

DOC_SUFFIXES = frozenset({".md", ".mdx"})
CODE_SUFFIXES = frozenset({".ts", ".js", ".json"})

_HEADING_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def task_namespaces(task: str) -> dict[str, float]:
    """Return the weighted namespaces searched for *task*."""
    return TASK_NAMESPACES.get(task, TASK_NAMESPACES["default"])


def extract_markdown_title(content: str) -> str | None:
    match = _HEADING_RE.search(content)
    return match.group(1).strip() if match else None


class RAGIndex:
    """Embed, store and retrieve reference material by task.

    Example::

        rag = RAGIndex(VectorStore(), EmbeddingGenerator())
        await rag.add("schema_examples", "github/memconfig.json",
                      {"title": "GitHub schema", "content": text})
        context = await rag.get_relevant_context("driver schema design", "schema_design")
    """

    def __init__(
        self,
        store: VectorStore | None = None,
        embedder: EmbeddingGenerator | None = None,
        config: VectorStoreConfig | None = None,
    ) -> None:
        self._config = config or VectorStoreConfig()
        self._store = store if store is not None else VectorStore()
        self._embedder = embedder or EmbeddingGenerator(self._config.embedding_model)

    @property
    def store(self) -> VectorStore:
        return self._store

    async def add(
        self,
        namespace: str,
        identifier: str,
        data: Mapping[str, Any],
    ) -> list[str]:
        """Chunk, embed and store one document.

        Each chunk is stored as ``{identifier}#{index}``. Chunks stored earlier
        for the same identifier are removed first, so re-adding a shorter
        document leaves no stale tail. Returns the ids of the stored chunks;
        empty content stores nothing.
        """
        removed = self._store.delete_prefix(namespace, f"{identifier}#")
        if removed:
            logger.debug("Replaced %d entries of %s in %s", removed, identifier, namespace)
        content = str(data.get("content", "")).strip()
        chunks = chunk_content(content, self._config.max_tokens_per_chunk)
        if not chunks:
            logger.warning("No content to index for %s in %s", identifier, namespace)
            return []

        vectors = await self._embedder.aembed_chunks(chunks, str(data.get("title") or ""))
        ids: list[str] = []
        for index, (chunk, vector) in enumerate(zip(chunks, vectors)):
            chunk_id = f"{identifier}#{index}"
            self._store.add(
                namespace,
                chunk_id,
                {
                    "title": data.get("title", ""),
                    "content": chunk,
                    "related_content": data.get("related_content"),
                },
                vector,
            )
            ids.append(chunk_id)

        logger.info("Added %d entries to %s for %s", len(ids), namespace, identifier)
        return ids

    async def get_relevant_context(self, query: str, task: str) -> str:
        """Return formatted reference material for *query* in the context of *task*.

        One section per namespace that produced matches, titled with the
        capitalised namespace name. An empty index yields ``""``.
        """
        query = query.strip()
        if not query or self._store.count() == 0:
            return ""

        query_vector = await self._embedder.aembed_query(query)
        sections: list[str] = []
        for namespace, weight in task_namespaces(task).items():
            results = self._store.query(
                self._config.results_per_namespace, query_vector, namespace
            )
            if not results:
                continue
            body = "\n\n".join(_format_result(r, weight) for r in results)
            sections.append(f"{namespace[:1].upper()}{namespace[1:]}:\n{body}")

        return "\n\n".join(sections)

    async def index_directory(self, path: str | Path, namespace: str) -> int:
        """Index every documentation and code file under *path*.

        Markdown files take their title from the first top-level heading,
        other files from their path relative to *path*. Returns the number
        of files indexed.
        """
        root = Path(path)
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")

        indexed = 0
        for file in sorted(root.rglob("*")):
            if not file.is_file():
                continue
            suffix = file.suffix.lower()
            if suffix not in DOC_SUFFIXES and suffix not in CODE_SUFFIXES:
                continue

            relative = file.relative_to(root).as_posix()
            content = file.read_text(encoding="utf-8", errors="replace")
            if suffix in DOC_SUFFIXES:
                title = extract_markdown_title(content) or file.stem
            else:
                title = relative

            if await self.add(namespace, relative, {"title": title, "content": content}):
                indexed += 1

        logger.info("Indexed %d files from %s into %s", indexed, root, namespace)
        return indexed


def _format_result(result: SearchResult, weight: float) -> str:
    content = result.content
    if result.related_content:
        content = f"{content}\n\nRelated Content:\n{result.related_content}"
    return f"ID: {result.id}\nScore: {result.score * weight:.4f}\nContent: {content}"
