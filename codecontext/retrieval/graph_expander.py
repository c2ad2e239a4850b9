"""Graph-based context expansion for seed chunks.

Three independent strategies add context around the seeds, in this order:
- Neighbor: chunks immediately before/after a seed in the same file
- Breadcrumb: siblings sharing the seed's enclosing definition
- Import: leading chunks of files the seed's file imports (one hop)

Each strategy is disabled by a zero limit. A chunk is emitted at most once
across strategies (first strategy wins) and never if already included.
Expanded scores are the seed score times a per-strategy decay below one, so
expanded chunks always rank below the seed that produced them.

Author: Hay Hoffman
"""

import logging
from collections.abc import Iterable, Sequence

from codecontext.exceptions import ChunkLookupError
from codecontext.retrieval.interfaces import ChunkStore
from codecontext.retrieval.resolvers import RESOLVERS, ImportResolver, resolvers_for
from models.chunk import ChunkRecord, ScoredChunk
from models.retrieval import SearchConfig
from settings import BREADCRUMB_SCORE_DECAY, IMPORT_SCORE_DECAY, NEIGHBOR_SCORE_DECAY

logger = logging.getLogger(__name__)

__all__ = ["GraphExpander"]


class GraphExpander:
    """Expand seed chunks with neighbor, breadcrumb and import context.

    Attributes:
        chunk_store: Chunk/file lookup collaborator
        neighbor_hops: Chunks taken on each side of a seed
        breadcrumb_expand_limit: Max siblings per seed
        import_files_per_seed: Max resolved import targets per seed
        chunks_per_import_file: Max chunks taken from each import target
        resolvers: Import resolver set
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        config: SearchConfig,
        resolvers: Sequence[ImportResolver] = RESOLVERS,
    ):
        """Initialize graph expander.

        Args:
            chunk_store: Chunk/file lookup collaborator
            config: Search configuration (expansion limits)
            resolvers: Import resolver set (default: all languages)
        """
        self.chunk_store = chunk_store
        self.neighbor_hops = config.neighbor_hops
        self.breadcrumb_expand_limit = config.breadcrumb_expand_limit
        self.import_files_per_seed = config.import_files_per_seed
        self.chunks_per_import_file = config.chunks_per_import_file
        self.resolvers = tuple(resolvers)

    def expand(
        self,
        seeds: Sequence[ScoredChunk],
        already_included: Iterable[str] = (),
    ) -> list[ScoredChunk]:
        """Run all enabled strategies and return the additional chunks.

        Args:
            seeds: Seed chunks (best first)
            already_included: Chunk keys ("file#index") that must not be re-emitted

        Returns:
            Expanded chunks in strategy order (neighbor, breadcrumb, import)
        """
        seen = set(already_included)
        seen.update(seed.key for seed in seeds)
        file_chunks: dict[str, list[ChunkRecord]] = {}

        neighbors = self.expand_neighbors(seeds, seen, file_chunks)
        breadcrumbs = self.expand_breadcrumbs(seeds, seen, file_chunks)
        imports = self.expand_imports(seeds, seen)

        logger.info(
            f"Expanded {len(seeds)} seeds: {len(neighbors)} neighbors, "
            f"{len(breadcrumbs)} breadcrumb siblings, {len(imports)} import chunks"
        )
        return neighbors + breadcrumbs + imports

    def _file_chunks(self, file_path: str, cache: dict[str, list[ChunkRecord]]) -> list[ChunkRecord] | None:
        if file_path not in cache:
            try:
                cache[file_path] = self.chunk_store.get_file_chunks(file_path)
            except ChunkLookupError as e:
                logger.warning(f"Skipping expansion for {file_path}: {e}")
                return None
        return cache[file_path]

    def expand_neighbors(
        self,
        seeds: Sequence[ScoredChunk],
        seen: set[str],
        file_chunks: dict[str, list[ChunkRecord]] | None = None,
    ) -> list[ScoredChunk]:
        """Up to neighbor_hops chunks on each side of every seed, closest first."""
        if self.neighbor_hops <= 0:
            return []

        cache = file_chunks if file_chunks is not None else {}
        results: list[ScoredChunk] = []

        for seed in seeds:
            chunks = self._file_chunks(seed.file_path, cache)
            if not chunks:
                continue
            by_index = {chunk.chunk_index: chunk for chunk in chunks}

            for distance in range(1, self.neighbor_hops + 1):
                for index in (seed.chunk_index - distance, seed.chunk_index + distance):
                    record = by_index.get(index)
                    if record is None or record.key in seen:
                        continue
                    seen.add(record.key)
                    results.append(
                        ScoredChunk.from_record(
                            record, seed.score * NEIGHBOR_SCORE_DECAY ** distance, "neighbor"
                        )
                    )

        return results

    def expand_breadcrumbs(
        self,
        seeds: Sequence[ScoredChunk],
        seen: set[str],
        file_chunks: dict[str, list[ChunkRecord]] | None = None,
    ) -> list[ScoredChunk]:
        """Up to breadcrumb_expand_limit same-breadcrumb siblings per seed, nearest first."""
        if self.breadcrumb_expand_limit <= 0:
            return []

        cache = file_chunks if file_chunks is not None else {}
        results: list[ScoredChunk] = []

        for seed in seeds:
            breadcrumb = seed.record.breadcrumb
            if not breadcrumb:
                continue
            chunks = self._file_chunks(seed.file_path, cache)
            if not chunks:
                continue

            siblings = sorted(
                (c for c in chunks if c.breadcrumb == breadcrumb and c.chunk_index != seed.chunk_index),
                key=lambda c: (abs(c.chunk_index - seed.chunk_index), c.chunk_index),
            )

            added = 0
            for record in siblings:
                if added >= self.breadcrumb_expand_limit:
                    break
                if record.key in seen:
                    continue
                seen.add(record.key)
                results.append(
                    ScoredChunk.from_record(record, seed.score * BREADCRUMB_SCORE_DECAY, "breadcrumb")
                )
                added += 1

        return results

    def expand_imports(self, seeds: Sequence[ScoredChunk], seen: set[str]) -> list[ScoredChunk]:
        """Leading chunks of files imported by each seed's file.

        Nothing is read or resolved when either import limit is zero.
        """
        if self.import_files_per_seed <= 0 or self.chunks_per_import_file <= 0:
            return []

        all_files = self.chunk_store.all_file_paths()
        targets_by_file: dict[str, list[str]] = {}
        results: list[ScoredChunk] = []

        for seed in seeds:
            if seed.file_path not in targets_by_file:
                targets_by_file[seed.file_path] = self._resolve_imports(seed.file_path, all_files)
            targets = targets_by_file[seed.file_path][:self.import_files_per_seed]

            for target in targets:
                try:
                    chunks = self.chunk_store.get_file_chunks(target)
                except ChunkLookupError as e:
                    logger.warning(f"Skipping import target {target}: {e}")
                    continue

                added = 0
                for record in chunks:
                    if added >= self.chunks_per_import_file:
                        break
                    if record.key in seen:
                        continue
                    seen.add(record.key)
                    results.append(
                        ScoredChunk.from_record(record, seed.score * IMPORT_SCORE_DECAY, "import")
                    )
                    added += 1

        return results

    def _resolve_imports(self, file_path: str, all_files: set[str]) -> list[str]:
        """Distinct resolved import targets of a file, in source order."""
        resolvers = resolvers_for(file_path, self.resolvers)
        if not resolvers:
            return []

        try:
            content = self.chunk_store.get_file_content(file_path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping import expansion for {file_path}: {e}")
            return []

        targets: list[str] = []
        for resolver in resolvers:
            for import_str in resolver.extract(content):
                target = resolver.resolve(import_str, file_path, all_files)
                if target and target != file_path and target not in targets:
                    targets.append(target)

        logger.debug(f"Resolved {len(targets)} import targets for {file_path}")
        return targets
