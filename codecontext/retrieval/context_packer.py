"""Budgeted packing of candidate chunks into per-file segments.

Steps per request:
1. Group chunks by file; order files by their best chunk score
2. Interval-merge raw spans within each file (overlapping or touching spans
   become one segment)
3. Keep the top max_segments_per_file segments by score, re-sorted by position
4. Consume the global max_total_chars budget file by file; a file that does
   not fit the remaining budget is dropped whole

Author: Hay Hoffman
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from codecontext.retrieval.interfaces import ChunkStore
from models.chunk import ScoredChunk
from models.retrieval import PackedFile, Segment

logger = logging.getLogger(__name__)

__all__ = ["ContextPacker", "merge_spans", "offset_to_line", "span_end_line"]


def offset_to_line(content: str, offset: int) -> int:
    """1-based line number of a character offset (1 + newlines before it)."""
    return content.count("\n", 0, max(0, offset)) + 1


def span_end_line(content: str, start: int, end: int) -> int:
    """1-based line of the last character in content[start:end] (end is exclusive)."""
    return offset_to_line(content, max(start, end - 1))


@dataclass
class _Span:
    start: int
    end: int
    score: float
    breadcrumb: str


def merge_spans(chunks: Sequence[ScoredChunk]) -> list[_Span]:
    """Merge the raw spans of one file's chunks.

    Spans are merged when the next start is at or before the current end.
    The merged score is the max contributing score and the breadcrumb comes
    from the top-scoring chunk.

    Args:
        chunks: Chunks of a single file

    Returns:
        Non-overlapping spans in position order
    """
    ordered = sorted(chunks, key=lambda c: (c.record.raw_start, c.record.raw_end))
    merged: list[_Span] = []

    for chunk in ordered:
        start, end = chunk.record.raw_start, chunk.record.raw_end
        if merged and start <= merged[-1].end:
            current = merged[-1]
            current.end = max(current.end, end)
            if chunk.score > current.score:
                current.score = chunk.score
                current.breadcrumb = chunk.record.breadcrumb
        else:
            merged.append(_Span(start, end, chunk.score, chunk.record.breadcrumb))

    return merged


class ContextPacker:
    """Pack scored chunks into non-overlapping segments within the character budget.

    Attributes:
        chunk_store: Provides file content
        max_segments_per_file: Segment cap per file
        max_total_chars: Global character budget across all files
    """

    def __init__(self, chunk_store: ChunkStore, max_segments_per_file: int, max_total_chars: int):
        """Initialize context packer.

        Args:
            chunk_store: Provides file content for segment text and line numbers
            max_segments_per_file: Segment cap per file
            max_total_chars: Global character budget

        Raises:
            ValueError: If a budget is not positive
        """
        if max_segments_per_file <= 0 or max_total_chars <= 0:
            raise ValueError(
                f"Packing budgets must be positive (max_segments_per_file={max_segments_per_file}, "
                f"max_total_chars={max_total_chars})"
            )
        self.chunk_store = chunk_store
        self.max_segments_per_file = max_segments_per_file
        self.max_total_chars = max_total_chars

    def pack(self, chunks: Sequence[ScoredChunk]) -> list[PackedFile]:
        """Pack chunks into files of merged segments.

        Args:
            chunks: Seeds and expanded chunks (any order)

        Returns:
            Packed files ordered by best chunk score (descending)
        """
        by_file: dict[str, list[ScoredChunk]] = {}
        for chunk in chunks:
            by_file.setdefault(chunk.file_path, []).append(chunk)

        ranked_files = sorted(
            by_file.items(),
            key=lambda item: max(c.score for c in item[1]),
            reverse=True,
        )

        remaining = self.max_total_chars
        packed: list[PackedFile] = []

        for file_path, file_chunks in ranked_files:
            try:
                content = self.chunk_store.get_file_content(file_path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping {file_path} during packing: {e}")
                continue

            packed_file = self._pack_file(file_path, file_chunks, content)
            if packed_file.total_chars > remaining:
                logger.debug(
                    f"Dropping {file_path}: {packed_file.total_chars} chars exceeds "
                    f"remaining budget {remaining}"
                )
                continue

            remaining -= packed_file.total_chars
            packed.append(packed_file)

        logger.info(
            f"Packed {len(packed)}/{len(ranked_files)} files, "
            f"{self.max_total_chars - remaining}/{self.max_total_chars} chars"
        )
        return packed

    def _pack_file(self, file_path: str, chunks: Sequence[ScoredChunk], content: str) -> PackedFile:
        spans = merge_spans(chunks)

        top = sorted(spans, key=lambda s: s.score, reverse=True)[:self.max_segments_per_file]
        top.sort(key=lambda s: s.start)

        segments = []
        for span in top:
            start = min(span.start, len(content))
            end = min(span.end, len(content))
            segments.append(
                Segment(
                    file_path=file_path,
                    raw_start=start,
                    raw_end=end,
                    start_line=offset_to_line(content, start),
                    end_line=span_end_line(content, start, end),
                    score=span.score,
                    breadcrumb=span.breadcrumb,
                    text=content[start:end],
                )
            )

        return PackedFile(
            file_path=file_path,
            score=max(c.score for c in chunks),
            segments=segments,
        )
