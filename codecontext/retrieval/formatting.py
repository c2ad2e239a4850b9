"""Text rendering of context packs.

Two modes:
- overview: every packed segment with a file/line header, breadcrumb and
  fenced code
- raw: the ranked seed list, then for the top seeds the whole contiguous
  breadcrumb group's raw source (one block per file + breadcrumb)

Author: Hay Hoffman
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Literal

from codecontext.exceptions import ChunkLookupError
from codecontext.retrieval.context_packer import offset_to_line, span_end_line
from codecontext.retrieval.interfaces import ChunkStore
from models.chunk import ChunkRecord, ScoredChunk
from models.retrieval import ContextPack, Segment
from settings import DEFAULT_RAW_TOP_N, EXTENSION_LANGUAGES, MAX_RAW_TOP_N

logger = logging.getLogger(__name__)

__all__ = [
    "ResponseMode",
    "RawCodeBlock",
    "detect_language",
    "normalize_raw_top_n",
    "collect_raw_code_blocks",
    "format_segment",
    "format_raw_code_block",
    "format_response",
]

ResponseMode = Literal["overview", "raw"]

BLOCK_SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class RawCodeBlock:
    file_path: str
    start_line: int
    end_line: int
    breadcrumb: str
    text: str
    score: float
    source: str


def detect_language(file_path: str) -> str:
    """Code fence language for a file path."""
    suffix = PurePosixPath(file_path).suffix.lower()
    return EXTENSION_LANGUAGES.get(suffix) or suffix[1:] or "plaintext"


def normalize_raw_top_n(value: int | None) -> int:
    """Clamp the raw block count to [1, MAX_RAW_TOP_N] (None -> default)."""
    return min(max(value or DEFAULT_RAW_TOP_N, 1), MAX_RAW_TOP_N)


def _breadcrumb_range(seed: ScoredChunk, file_chunks: Sequence[ChunkRecord], content_length: int) -> tuple[int, int]:
    """Raw span of the contiguous run of chunks sharing the seed's breadcrumb."""
    start, end = seed.record.raw_start, seed.record.raw_end
    breadcrumb = seed.record.breadcrumb

    position = next(
        (i for i, chunk in enumerate(file_chunks) if chunk.chunk_index == seed.chunk_index),
        None,
    )
    if breadcrumb and position is not None:
        first = last = position
        while first > 0 and file_chunks[first - 1].breadcrumb == breadcrumb:
            first -= 1
        while last < len(file_chunks) - 1 and file_chunks[last + 1].breadcrumb == breadcrumb:
            last += 1
        group = file_chunks[first:last + 1]
        start = min(chunk.raw_start for chunk in group)
        end = max(chunk.raw_end for chunk in group)

    start = max(0, min(start, content_length))
    end = max(start, min(end, content_length))
    return start, end


def collect_raw_code_blocks(
    chunk_store: ChunkStore,
    seeds: Sequence[ScoredChunk],
    top_n: int,
) -> list[RawCodeBlock]:
    """Extract up to ``top_n`` raw source blocks for the ranked seeds.

    Seeds are de-duplicated by file + breadcrumb; each surviving seed expands
    to its breadcrumb group. Blank blocks and repeated ranges are skipped, and
    unreadable files are skipped with a warning.
    """
    if not seeds or top_n <= 0:
        return []

    deduped: list[ScoredChunk] = []
    seen_seeds: set[str] = set()
    for seed in seeds:
        key = f"{seed.file_path}::{seed.record.breadcrumb}"
        if key not in seen_seeds:
            seen_seeds.add(key)
            deduped.append(seed)

    blocks: list[RawCodeBlock] = []
    seen_ranges: set[str] = set()

    for seed in deduped:
        if len(blocks) >= top_n:
            break

        try:
            content = chunk_store.get_file_content(seed.file_path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping raw block for {seed.file_path}: {e}")
            continue

        try:
            file_chunks = chunk_store.get_file_chunks(seed.file_path)
        except ChunkLookupError:
            file_chunks = []

        start, end = _breadcrumb_range(seed, file_chunks, len(content))
        text = content[start:end]
        if not text.strip():
            continue

        range_key = f"{seed.file_path}:{start}:{end}"
        if range_key in seen_ranges:
            continue
        seen_ranges.add(range_key)

        blocks.append(
            RawCodeBlock(
                file_path=seed.file_path,
                start_line=offset_to_line(content, start),
                end_line=span_end_line(content, start, end),
                breadcrumb=seed.record.breadcrumb,
                text=text,
                score=seed.score,
                source=seed.source,
            )
        )

    return blocks


def _fenced(header: str, breadcrumb: str, file_path: str, text: str) -> str:
    lines = [header]
    if breadcrumb:
        lines.append(f"> {breadcrumb}")
    lines.append(f"```{detect_language(file_path)}\n{text}\n```")
    return "\n".join(lines)


def format_segment(segment: Segment) -> str:
    header = f"## {segment.file_path} (L{segment.start_line}-{segment.end_line})"
    return _fenced(header, segment.breadcrumb, segment.file_path, segment.text)


def format_raw_code_block(block: RawCodeBlock) -> str:
    header = (
        f"## {block.file_path} (L{block.start_line}-{block.end_line}) "
        f"score={block.score:.4f} source={block.source}"
    )
    return _fenced(header, block.breadcrumb, block.file_path, block.text)


def _summary_line(pack: ContextPack, mode: ResponseMode) -> str:
    return " | ".join([
        f"Found {len(pack.seeds)} relevant code blocks",
        f"Files: {len(pack.files)}",
        f"Total segments: {pack.total_segments}",
        f"Mode: {mode}",
    ])


def _filter_summary(include_globs: Sequence[str], exclude_globs: Sequence[str]) -> str:
    if not include_globs and not exclude_globs:
        return ""
    include_text = ", ".join(include_globs) or "none"
    exclude_text = ", ".join(exclude_globs) or "none"
    return f"Filter include: {include_text} | exclude: {exclude_text}"


def format_response(
    pack: ContextPack,
    mode: ResponseMode = "overview",
    raw_blocks: Sequence[RawCodeBlock] = (),
    raw_top_n: int = DEFAULT_RAW_TOP_N,
    include_globs: Sequence[str] = (),
    exclude_globs: Sequence[str] = (),
) -> str:
    """Render a context pack as markdown text.

    Args:
        pack: Search result
        mode: 'overview' (packed segments) or 'raw' (seed list + raw blocks)
        raw_blocks: Blocks from collect_raw_code_blocks (raw mode only)
        raw_top_n: Number of seeds listed in raw mode
        include_globs: Include globs echoed in the header
        exclude_globs: Exclude globs echoed in the header

    Returns:
        Summary line, optional filter line, blank line, body
    """
    if mode == "raw":
        seed_lines = "\n".join(
            f"{i}. {seed.file_path}#{seed.chunk_index} score={seed.score:.4f} source={seed.source}"
            for i, seed in enumerate(pack.seeds[:raw_top_n], start=1)
        )
        blocks = (
            BLOCK_SEPARATOR.join(format_raw_code_block(block) for block in raw_blocks)
            if raw_blocks
            else "_No raw code blocks found after stage-2 extraction._"
        )
        body = "\n".join([
            "## Stage 1: Retrieval",
            seed_lines or "_No seeds_",
            "",
            f"## Stage 2: Top {raw_top_n} raw code blocks",
            blocks,
        ])
    else:
        body = BLOCK_SEPARATOR.join(
            "\n\n".join(format_segment(segment) for segment in packed.segments)
            for packed in pack.files
        )

    header = [line for line in (_summary_line(pack, mode), _filter_summary(include_globs, exclude_globs)) if line]
    if not body:
        return "\n".join(header)
    return "\n".join(header) + "\n\n" + body
