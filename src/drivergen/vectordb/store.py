"""In-memory namespaced vector store with cosine-similarity search."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

import numpy as np
from pydantic import ValidationError

from drivergen.fsutil import atomic_write_text
from drivergen.vectordb.exceptions import EmbeddingError, VectorStoreError
from drivergen.vectordb.models import SearchResult, VectorEntry

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; ``0.0`` when either has zero magnitude.

    Raises:
        EmbeddingError: If the vectors differ in length.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise EmbeddingError(
            f"Vector dimension mismatch: {va.shape[0]} != {vb.shape[0]}"
        )
    magnitude = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if magnitude == 0.0:
        return 0.0
    return float(np.dot(va, vb) / magnitude)


class VectorStore:
    """Namespaced in-memory store of embedding vectors.

    Entries keep their insertion order inside a namespace; re-adding an id
    replaces the entry without moving it. Queries rank entries by cosine
    similarity, highest first, and equal scores keep insertion order.

    Example::

        store = VectorStore()
        store.add("driver_code", "github#0", {"title": "GitHub", "content": "..."}, vec)
        results = store.query(2, query_vec, "driver_code")
    """

    def __init__(self) -> None:
        self._namespaces: dict[str, dict[str, VectorEntry]] = {}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(
        self,
        namespace: str,
        id: str,
        data: Mapping[str, Any],
        vector: Sequence[float],
    ) -> VectorEntry:
        """Store *vector* under ``(namespace, id)`` with its title and content."""
        if not namespace:
            raise ValueError("namespace must not be empty")
        if not id:
            raise ValueError("id must not be empty")

        entry = VectorEntry(
            namespace=namespace,
            id=id,
            title=str(data.get("title", "")),
            content=str(data.get("content", "")),
            related_content=str(data.get("related_content") or ""),
            vector=[float(x) for x in vector],
        )
        self._namespaces.setdefault(namespace, {})[id] = entry
        return entry

    def delete(self, namespace: str, id: str) -> bool:
        """Remove one entry. Returns ``True`` if it existed."""
        entries = self._namespaces.get(namespace)
        if not entries or id not in entries:
            return False
        del entries[id]
        if not entries:
            del self._namespaces[namespace]
        return True

    def delete_prefix(self, namespace: str, prefix: str) -> int:
        """Remove every entry of *namespace* whose id starts with *prefix*.

        Returns the number of entries removed.
        """
        entries = self._namespaces.get(namespace)
        if not entries:
            return 0
        doomed = [id for id in entries if id.startswith(prefix)]
        for id in doomed:
            del entries[id]
        if not entries:
            del self._namespaces[namespace]
        return len(doomed)

    def delete_namespace(self, namespace: str) -> int:
        """Drop a whole namespace and return how many entries it held."""
        entries = self._namespaces.pop(namespace, {})
        return len(entries)

    def clear(self) -> None:
        self._namespaces.clear()

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(
        self,
        top_n: int,
        vector: Sequence[float],
        namespace: str,
    ) -> list[SearchResult]:
        """Return the *top_n* entries of *namespace* most similar to *vector*.

        An unknown or empty namespace yields an empty list.

        Raises:
            EmbeddingError: If a stored vector's dimension differs from the query.
        """
        if top_n <= 0:
            return []
        entries = list(self._namespaces.get(namespace, {}).values())
        if not entries:
            logger.debug("No vectors found for namespace %s", namespace)
            return []

        scored = [
            (cosine_similarity(vector, entry.vector), entry) for entry in entries
        ]
        # sorted() is stable, so equal scores keep insertion order
        ranked = sorted(scored, key=lambda pair: pair[0], reverse=True)

        return [
            SearchResult(
                id=entry.id,
                score=score,
                title=entry.title,
                content=entry.content,
                related_content=entry.related_content,
            )
            for score, entry in ranked[:top_n]
        ]

    def get(self, namespace: str, id: str) -> VectorEntry | None:
        return self._namespaces.get(namespace, {}).get(id)

    def namespaces(self) -> list[str]:
        """Return the namespaces that currently hold entries."""
        return list(self._namespaces)

    def count(self, namespace: str | None = None) -> int:
        """Return the number of entries in *namespace*, or in the whole store."""
        if namespace is not None:
            return len(self._namespaces.get(namespace, {}))
        return sum(len(entries) for entries in self._namespaces.values())

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: str | Path) -> Path:
        """Persist every entry to a JSON file atomically."""
        data = {
            namespace: [entry.model_dump() for entry in entries.values()]
            for namespace, entries in self._namespaces.items()
        }
        target = atomic_write_text(path, json.dumps(data))
        logger.debug("Saved %d vectors to %s", self.count(), target)
        return target

    @classmethod
    def load(cls, path: str | Path) -> VectorStore:
        """Load a store written by :meth:`save`.

        Raises:
            FileNotFoundError: If *path* does not exist.
            VectorStoreError: If the file content is malformed.
        """
        raw = Path(path).read_text(encoding="utf-8")
        try:
            data = json.loads(raw)
            store = cls()
            for namespace, entries in data.items():
                for item in entries:
                    entry = VectorEntry.model_validate(item)
                    store._namespaces.setdefault(namespace, {})[entry.id] = entry
        except (json.JSONDecodeError, ValidationError, AttributeError, TypeError) as exc:
            raise VectorStoreError(f"Malformed vector store file {path}: {exc}") from exc
        return store
