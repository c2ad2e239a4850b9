"""Tests for the JSON-backed chunk store.

Author: Hay Hoffman
"""

import json

import pytest

from codecontext.exceptions import ChunkLookupError
from codecontext.retrieval.chunk_store import JSONChunkStore


@pytest.fixture
def repo(tmp_path):
    """Repository with one source file and a chunks.json describing it."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("import os\n\ndef main():\n    pass\n", encoding="utf-8")

    chunks = [
        {
            "chunk_id": "c2", "file_path": "src/app.py", "chunk_index": 1,
            "language": "python", "breadcrumb": "app.py > def main",
            "raw_start": 11, "raw_end": 32,
        },
        {
            "chunk_id": "c1", "file_path": "src/app.py", "chunk_index": 0,
            "language": "python", "breadcrumb": "app.py",
            "raw_start": 0, "raw_end": 10,
        },
    ]
    chunks_file = tmp_path / "chunks.json"
    chunks_file.write_text(json.dumps({"chunks": chunks}), encoding="utf-8")
    return tmp_path, chunks_file


class TestJSONChunkStore:
    """Tests for JSONChunkStore."""

    def test_file_chunks_ordered_by_index(self, repo):
        root, chunks_file = repo
        store = JSONChunkStore.from_file(chunks_file, root)

        assert [c.chunk_id for c in store.get_file_chunks("src/app.py")] == ["c1", "c2"]
        assert store.all_file_paths() == {"src/app.py"}

    def test_get_chunks_skips_unknown_ids(self, repo):
        store = JSONChunkStore.from_file(repo[1], repo[0])

        assert [c.chunk_id for c in store.get_chunks(["c2", "missing", "c1"])] == ["c2", "c1"]

    def test_lookup_errors(self, repo):
        store = JSONChunkStore.from_file(repo[1], repo[0])

        with pytest.raises(ChunkLookupError):
            store.get_chunk("missing")
        with pytest.raises(ChunkLookupError):
            store.get_file_chunks("src/other.py")

    def test_file_content_read_from_repo_root(self, repo):
        root, chunks_file = repo
        store = JSONChunkStore.from_file(chunks_file, root)

        assert store.get_file_content("src/app.py").startswith("import os")
        with pytest.raises(FileNotFoundError):
            store.get_file_content("src/gone.py")

    def test_invalid_record_rejected(self, tmp_path):
        chunks_file = tmp_path / "chunks.json"
        chunks_file.write_text(json.dumps([{"chunk_id": "x", "file_path": "a.py", "chunk_index": 0,
                                            "raw_start": 10, "raw_end": 2}]))

        with pytest.raises(ValueError):
            JSONChunkStore.from_file(chunks_file, tmp_path)
