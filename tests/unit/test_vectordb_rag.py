"""Unit tests for RAGIndex with a deterministic keyword embedder."""

from __future__ import annotations

from pathlib import Path

import pytest

from drivergen.vectordb.models import VectorStoreConfig
from drivergen.vectordb.rag import RAGIndex, extract_markdown_title, task_namespaces
from drivergen.vectordb.store import VectorStore

_KEYWORDS = ("schema", "code", "docs")


class KeywordEmbedder:
    """Embeds text as keyword counts so similarity is predictable."""

    def __init__(self) -> None:
        self.batches: list[list[str]] = []
        self.titles: list[str] = []

    def _vector(self, text: str) -> list[float]:
        lowered = text.lower()
        return [float(lowered.count(k)) for k in _KEYWORDS]

    async def aembed_query(self, query: str) -> list[float]:
        return self._vector(query)

    async def aembed_chunks(self, chunks: list[str], title: str = "") -> list[list[float]]:
        self.batches.append(list(chunks))
        self.titles.append(title)
        return [self._vector(c) for c in chunks]


def _index(**config: object) -> tuple[RAGIndex, KeywordEmbedder]:
    embedder = KeywordEmbedder()
    rag = RAGIndex(VectorStore(), embedder, VectorStoreConfig(**config))
    return rag, embedder


class TestHelpers:
    def test_known_task(self) -> None:
        assert task_namespaces("code_generation")["driver_code"] == 0.5

    def test_unknown_task_uses_default(self) -> None:
        assert task_namespaces("documentation") == task_namespaces("default")

    def test_markdown_title(self) -> None:
        assert extract_markdown_title("intro\n# The Title \nbody") == "The Title"
        assert extract_markdown_title("## only second level") is None


class TestAdd:
    async def test_chunks_stored_with_suffixed_ids(self) -> None:
        rag, embedder = _index(max_tokens_per_chunk=2)
        ids = await rag.add("driver_code", "github", {"title": "GitHub", "content": "a b\n\nc d"})
        assert ids == ["github#0", "github#1"]
        assert embedder.batches == [["a b", "c d"]]
        assert embedder.titles == ["GitHub"]
        assert rag.store.get("driver_code", "github#1").title == "GitHub"

    async def test_empty_content_stores_nothing(self) -> None:
        rag, _ = _index()
        assert await rag.add("driver_code", "x", {"content": "  "}) == []
        assert rag.store.count() == 0

    async def test_re_add_drops_stale_chunks(self) -> None:
        rag, _ = _index(max_tokens_per_chunk=2)
        await rag.add("driver_code", "github", {"content": "a b\n\nc d\n\ne f"})
        await rag.add("driver_code", "github-enterprise", {"content": "g h"})

        ids = await rag.add("driver_code", "github", {"content": "x y"})

        assert ids == ["github#0"]
        assert rag.store.get("driver_code", "github#0").content == "x y"
        assert rag.store.get("driver_code", "github#1") is None
        assert rag.store.get("driver_code", "github#2") is None
        assert rag.store.get("driver_code", "github-enterprise#0") is not None
        assert rag.store.count("driver_code") == 2

    async def test_re_add_with_empty_content_removes_document(self) -> None:
        rag, _ = _index()
        await rag.add("driver_code", "github", {"content": "code"})
        assert await rag.add("driver_code", "github", {"content": ""}) == []
        assert rag.store.count() == 0


class TestGetRelevantContext:
    async def test_empty_index_gives_empty_string(self) -> None:
        rag, _ = _index()
        assert await rag.get_relevant_context("schema", "schema_design") == ""

    async def test_empty_query_gives_empty_string(self) -> None:
        rag, _ = _index()
        await rag.add("driver_code", "a", {"content": "code"})
        assert await rag.get_relevant_context("   ", "schema_design") == ""

    async def test_sections_per_namespace_with_weighted_scores(self) -> None:
        rag, _ = _index()
        await rag.add("driver_code", "example", {"content": "code code"})
        await rag.add(
            "schema_examples",
            "memconfig",
            {"content": "schema", "related_content": "extra notes"},
        )

        context = await rag.get_relevant_context("schema", "schema_design")

        # Namespaces appear in the task's order; empty ones are skipped.
        assert context.index("Schema_examples:") < context.index("Driver_code:")
        assert "Membrane_docs:" not in context
        assert "ID: memconfig#0\nScore: 0.4000\nContent: schema\n\nRelated Content:\nextra notes" in context
        assert "ID: example#0\nScore: 0.0000\nContent: code code" in context

    async def test_results_per_namespace_limit(self) -> None:
        rag, _ = _index(results_per_namespace=1)
        await rag.add("driver_code", "one", {"content": "code"})
        await rag.add("driver_code", "two", {"content": "code"})
        context = await rag.get_relevant_context("code", "code_generation")
        assert context.count("ID: ") == 1


class TestIndexDirectory:
    async def test_indexes_docs_and_code(self, tmp_path: Path) -> None:
        (tmp_path / "guide.md").write_text("# Writing drivers\n\ndocs here")
        (tmp_path / "nested").mkdir()
        (tmp_path / "nested" / "index.ts").write_text("export const Root = {}; // code")
        (tmp_path / "image.png").write_bytes(b"\x89PNG")

        rag, _ = _index()
        count = await rag.index_directory(tmp_path, "driver_code")

        assert count == 2
        assert rag.store.get("driver_code", "guide.md#0").title == "Writing drivers"
        assert rag.store.get("driver_code", "nested/index.ts#0").title == "nested/index.ts"

    async def test_missing_directory(self, tmp_path: Path) -> None:
        rag, _ = _index()
        with pytest.raises(NotADirectoryError):
            await rag.index_directory(tmp_path / "absent", "driver_code")
