"""Retrieval orchestrator: query channels -> fusion -> rerank -> expand -> pack.

Pipeline per request:
1. Vector and lexical channels run in parallel, each bounded by a timeout.
   A channel failure fails the request (ChannelError).
2. Candidates are filtered by path globs and language.
3. Weighted RRF fusion of the two rankings.
4. Per-file cap bounds rerank cost while keeping file diversity.
5. Cross-encoder rerank; any failure falls back to fused order.
6. Optional smart cutoff (pluggable, pass-through by default).
7. Graph expansion of the seeds, then budgeted packing.

The service holds no per-request state and is safe to share between threads.

Author: Hay Hoffman
Version: 2.0
"""

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, wait

from codecontext.exceptions import ChannelError, RerankError
from codecontext.retrieval.context_packer import ContextPacker
from codecontext.retrieval.filters import CandidateFilter
from codecontext.retrieval.fusion import rrf_scores
from codecontext.retrieval.graph_expander import GraphExpander
from codecontext.retrieval.interfaces import ChunkStore, LexicalChannel, Reranker, VectorChannel
from codecontext.retrieval.resolvers import RESOLVERS, ImportResolver
from models.chunk import ChunkRecord, ScoredChunk
from models.retrieval import ContextPack, QueryChannels, SearchConfig, SearchFilters

logger = logging.getLogger(__name__)

__all__ = [
    "SearchService",
    "SmartCutoff",
    "build_query_channels",
    "apply_pre_rerank_per_file_cap",
    "pass_through_cutoff",
]

# Trims the long tail of ranked seeds
SmartCutoff = Callable[[list[ScoredChunk]], list[ScoredChunk]]


def pass_through_cutoff(chunks: list[ScoredChunk]) -> list[ScoredChunk]:
    return chunks


def build_query_channels(information_request: str, technical_terms: Sequence[str] = ()) -> QueryChannels:
    """Derive per-stage query texts from a request and its technical terms.

    - vector: the natural-language request
    - lexical: de-duplicated terms first (exact identifiers), then the request
    - rerank: the request followed by the terms

    Raises:
        ValueError: If the request is empty
    """
    request = information_request.strip()

    terms: list[str] = []
    for term in technical_terms:
        term = term.strip()
        if term and term not in terms:
            terms.append(term)

    lexical = " ".join(part for part in (" ".join(terms), request) if part)
    rerank = " ".join([request, *terms]) if terms else request

    return QueryChannels(vector_query=request, lexical_query=lexical or request, rerank_query=rerank)


def apply_pre_rerank_per_file_cap(chunks: Sequence[ScoredChunk], cap: int) -> list[ScoredChunk]:
    """Keep at most ``cap`` chunks per file, preserving input order.

    Input is expected best-first, so the survivors of each file are its
    highest-scoring chunks. A cap <= 0 disables the filter.
    """
    if cap <= 0:
        return list(chunks)

    per_file: dict[str, int] = {}
    kept: list[ScoredChunk] = []
    for chunk in chunks:
        count = per_file.get(chunk.file_path, 0)
        if count >= cap:
            continue
        per_file[chunk.file_path] = count + 1
        kept.append(chunk)
    return kept


class SearchService:
    """Hybrid code search producing packed context bundles.

    Attributes:
        chunk_store: Chunk/file lookup collaborator
        vector_channel: Vector search collaborator
        lexical_channel: Lexical search collaborator
        reranker: Optional rerank collaborator (None disables rerank)
        config: Search configuration
        cutoff: Smart cutoff strategy, applied when enabled in config
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        vector_channel: VectorChannel,
        lexical_channel: LexicalChannel,
        reranker: Reranker | None = None,
        config: SearchConfig | None = None,
        cutoff: SmartCutoff = pass_through_cutoff,
        resolvers: Sequence[ImportResolver] = RESOLVERS,
    ):
        self.chunk_store = chunk_store
        self.vector_channel = vector_channel
        self.lexical_channel = lexical_channel
        self.reranker = reranker
        self.config = config or SearchConfig()
        self.cutoff = cutoff

        self.expander = GraphExpander(chunk_store, self.config, resolvers)
        self.packer = ContextPacker(
            chunk_store,
            max_segments_per_file=self.config.max_segments_per_file,
            max_total_chars=self.config.max_total_chars,
        )

        logger.info(
            f"SearchService initialized: w_vec={self.config.fusion.w_vec}, "
            f"rrf_k0={self.config.fusion.rrf_k0}, fused_top_m={self.config.fusion.fused_top_m}, "
            f"rerank={'on' if reranker else 'off'}"
        )

    def build_context_pack(
        self,
        query: str,
        channels: QueryChannels | None = None,
        filters: SearchFilters | None = None,
    ) -> ContextPack:
        """Run the full retrieval pipeline for one request.

        Args:
            query: Natural-language request (used for every channel when
                ``channels`` is not given)
            channels: Per-stage query texts
            filters: Path and language filters

        Returns:
            ContextPack with seeds, expanded chunks, packed files and timings

        Raises:
            ValueError: If the query is empty or the filters are invalid
            ChannelError: If the vector or lexical channel fails or times out
        """
        channels = channels or QueryChannels(vector_query=query, lexical_query=query, rerank_query=query)
        candidate_filter = CandidateFilter(filters)
        timing: dict[str, float] = {}
        started = time.perf_counter()

        # 1. Parallel channel search
        stage_start = time.perf_counter()
        vector_hits, lexical_hits = self._search_channels(channels, candidate_filter.language_filter)
        timing["channels"] = _elapsed_ms(stage_start)

        # 2. Candidate filtering
        records = {
            record.chunk_id: record
            for record in self.chunk_store.get_chunks(
                dict.fromkeys([cid for cid, _ in vector_hits] + [cid for cid, _ in lexical_hits])
            )
        }
        vector_ranked = self._filter_ranked(vector_hits, records, candidate_filter)
        lexical_ranked = self._filter_ranked(lexical_hits, records, candidate_filter)
        logger.debug(
            f"Candidates after filtering: vector={len(vector_ranked)}/{len(vector_hits)}, "
            f"lexical={len(lexical_ranked)}/{len(lexical_hits)}"
        )

        # 3. Fusion
        stage_start = time.perf_counter()
        fused = self._fuse(vector_ranked, lexical_ranked, records)
        timing["fusion"] = _elapsed_ms(stage_start)

        # 4. Per-file cap
        capped = apply_pre_rerank_per_file_cap(fused, self.config.pre_rerank_per_file_cap)

        # 5. Rerank with fallback
        stage_start = time.perf_counter()
        seeds = self._rerank(channels.rerank_query, capped)[:self.config.rerank_top_n]
        timing["rerank"] = _elapsed_ms(stage_start)

        # 6. Smart cutoff
        if self.config.enable_smart_cutoff:
            seeds = self.cutoff(seeds)

        # 7. Expansion and packing
        stage_start = time.perf_counter()
        expanded = self.expander.expand(seeds)
        timing["expansion"] = _elapsed_ms(stage_start)

        stage_start = time.perf_counter()
        files = self.packer.pack(seeds + expanded)
        timing["packing"] = _elapsed_ms(stage_start)
        timing["total"] = _elapsed_ms(started)

        logger.info(
            f"Search complete: {len(fused)} fused, {len(capped)} capped, {len(seeds)} seeds, "
            f"{len(expanded)} expanded, {len(files)} files in {timing['total']:.0f}ms"
        )
        return ContextPack(seeds=seeds, expanded=expanded, files=files, timing_ms=timing)

    def _search_channels(
        self,
        channels: QueryChannels,
        language_filter: list[str] | None,
    ) -> tuple[list[tuple[str, float]], list[tuple[str, float]]]:
        """Query both channels concurrently under one shared deadline.

        Each request gets its own pool, so a call that outlives its timeout
        never holds a worker another request needs.

        Raises:
            ChannelError: If either channel raises or exceeds channel_timeout_s
        """
        timeout = self.config.channel_timeout_s
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="channel")
        try:
            futures = {
                "vector": executor.submit(
                    self.vector_channel.search,
                    channels.vector_query,
                    self.config.vector_top_k,
                    language_filter,
                ),
                "lexical": executor.submit(
                    self.lexical_channel.search,
                    channels.lexical_query,
                    self.config.lexical_top_k,
                    language_filter,
                ),
            }
            _, pending = wait(futures.values(), timeout=timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        results = []
        for stage, future in futures.items():
            if future in pending:
                logger.error(f"{stage} channel timed out after {timeout}s")
                raise ChannelError(f"{stage} channel timed out after {timeout}s", stage=stage)
            try:
                results.append(future.result())
            except Exception as e:
                logger.error(f"{stage} channel failed: {e}", exc_info=True)
                raise ChannelError(f"{stage} channel failed: {e}", stage=stage) from e

        return results[0], results[1]

    @staticmethod
    def _filter_ranked(
        hits: list[tuple[str, float]],
        records: dict[str, ChunkRecord],
        candidate_filter: CandidateFilter,
    ) -> list[str]:
        """Ranked ids that are indexed and pass the filters (first occurrence wins)."""
        ranked: list[str] = []
        seen: set[str] = set()
        for chunk_id, _ in hits:
            record = records.get(chunk_id)
            if record is None or chunk_id in seen or not candidate_filter.accepts(record):
                continue
            seen.add(chunk_id)
            ranked.append(chunk_id)
        return ranked

    def _fuse(
        self,
        vector_ranked: list[str],
        lexical_ranked: list[str],
        records: dict[str, ChunkRecord],
    ) -> list[ScoredChunk]:
        """Fuse rankings into scored chunks tagged with their dominant channel."""
        fusion = self.config.fusion
        vector_rank = {cid: rank for rank, cid in enumerate(vector_ranked)}
        lexical_rank = {cid: rank for rank, cid in enumerate(lexical_ranked)}

        fused: list[ScoredChunk] = []
        for chunk_id, score in rrf_scores(vector_ranked, lexical_ranked, fusion):
            vector_part = fusion.w_vec / (fusion.rrf_k0 + vector_rank[chunk_id]) if chunk_id in vector_rank else 0.0
            lexical_part = fusion.w_lex / (fusion.rrf_k0 + lexical_rank[chunk_id]) if chunk_id in lexical_rank else 0.0
            source = "vector" if vector_part >= lexical_part else "lexical"
            fused.append(ScoredChunk.from_record(records[chunk_id], score, source))
        return fused

    def _rerank(self, query: str, candidates: list[ScoredChunk]) -> list[ScoredChunk]:
        """Rerank candidates; on any failure return them in fused order."""
        if self.reranker is None or not candidates:
            return candidates

        texts = [c.record.display_code or c.record.vector_text for c in candidates]
        # Separate from the channel pools; a hung rerank only keeps its own thread
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rerank")
        future = executor.submit(self.reranker.rerank, query, texts)
        executor.shutdown(wait=False)

        try:
            scores = future.result(timeout=self.config.rerank_timeout_s)
            if len(scores) != len(candidates):
                raise RerankError(f"Reranker returned {len(scores)} scores for {len(candidates)} candidates")
        except TimeoutError:
            logger.warning(
                f"Rerank timed out after {self.config.rerank_timeout_s}s, falling back to fused order"
            )
            return candidates
        except Exception as e:
            logger.warning(f"Rerank failed, falling back to fused order: {e}")
            return candidates

        reranked = [
            ScoredChunk.from_record(chunk.record, float(score), "rerank")
            for chunk, score in zip(candidates, scores)
        ]
        reranked.sort(key=lambda c: c.score, reverse=True)
        return reranked

def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)
