"""Command-line interface for the code context retrieval engine.

Commands:
    search     Retrieve packed code context for an information request
    tune       Grid-search fusion parameters over a labeled replay dataset
    benchmark  Score stored rankings of a labeled benchmark dataset
    feedback   Summarize implicit feedback signals

Usage:
    python app.py search ./repo "how are sessions refreshed" --terms SessionStore
    python app.py tune data/replay.jsonl --target ndcg@5 --write-config
    python app.py benchmark data/benchmark.jsonl --k 1,3,5,10
    python app.py feedback --days 7 --top 10

Author: Hay Hoffman
"""

import argparse
import json
import logging
import os
import sqlite3
import sys
import warnings
from pathlib import Path

# Suppress transformers and torch warnings BEFORE importing them
warnings.filterwarnings("ignore")
os.environ["TRANSFORMERS_VERBOSITY"] = "error"
os.environ["TOKENIZERS_PARALLELISM"] = "false"

from pydantic import ValidationError

from codecontext.evaluation.auto_tune import run_auto_tune
from codecontext.evaluation.datasets import load_auto_tune_dataset, load_benchmark_dataset
from codecontext.evaluation.metrics import evaluate_benchmark_cases
from codecontext.exceptions import AutoTuneConfigError, ChannelError, DatasetError
from codecontext.feedback.feedback_loop import FeedbackStore
from codecontext.retrieval.channels import BM25LexicalChannel, FAISSVectorChannel
from codecontext.retrieval.chunk_store import JSONChunkStore
from codecontext.retrieval.formatting import (
    collect_raw_code_blocks,
    format_response,
    normalize_raw_top_n,
)
from codecontext.retrieval.reranker import CrossEncoderReranker
from codecontext.retrieval.search_service import SearchService, build_query_channels
from models.evaluation import AutoTuneGrid, AutoTuneResult, BenchmarkSummary
from models.feedback import FeedbackSeed, FeedbackSummary, RetrievalEvent
from models.retrieval import FusionConfig, SearchConfig, SearchFilters
from settings import (
    AUTO_TUNE_DEFAULT_K_VALUES,
    BENCHMARK_DEFAULT_K_VALUES,
    CHUNKS_FILE,
    ENABLE_RERANK,
    FEEDBACK_DB_FILE,
    FUSION_CONFIG_FILE,
    INDEX_DIR,
    LOG_LEVEL,
)

logger = logging.getLogger(__name__)

DATASET_HINT = (
    "Hint: datasets are .jsonl (one case per line) or .json (array or {\"cases\": [...]}); "
    "each case needs id, query, relevant and either retrieved (benchmark) or "
    "vectorRetrieved/lexicalRetrieved (tune)."
)
INDEX_HINT = (
    "Hint: build the chunk file with the indexing pipeline and the vector index with "
    "'python scripts/build_vector_index.py', or pass --chunks / --index-dir."
)


def parse_k_values(raw: str | None, default: list[int]) -> list[float]:
    """Parse a comma-separated k list ("1,3,5")."""
    if not raw:
        return list(default)
    try:
        return [float(token) for token in raw.split(",") if token.strip()]
    except ValueError as e:
        raise AutoTuneConfigError(f"Invalid --k value '{raw}': expected e.g. 1,3,5", field="k_values") from e


def build_search_service(repo: Path, chunks_file: Path, index_dir: Path) -> SearchService:
    """Wire the default collaborators (JSON chunks, FAISS, BM25, cross-encoder)."""
    chunk_store = JSONChunkStore.from_file(chunks_file, repo_root=repo)
    records = list(chunk_store.chunk_cache.values())

    vector_channel = FAISSVectorChannel(
        index_dir,
        language_by_id={record.chunk_id: record.language for record in records},
    )
    lexical_channel = BM25LexicalChannel(records)
    reranker = CrossEncoderReranker() if ENABLE_RERANK else None

    config = SearchConfig(fusion=FusionConfig.load_or_default(FUSION_CONFIG_FILE))
    return SearchService(chunk_store, vector_channel, lexical_channel, reranker=reranker, config=config)


def record_feedback(information_request: str, technical_terms: list[str], seeds, session_id: str | None) -> None:
    """Append the search to the feedback log; failures only log a warning."""
    try:
        store = FeedbackStore(FEEDBACK_DB_FILE)
        store.record_event(
            RetrievalEvent(
                query=information_request,
                technical_terms=technical_terms,
                seeds=[
                    FeedbackSeed(
                        chunk_id=seed.chunk_id,
                        file_path=seed.file_path,
                        chunk_index=seed.chunk_index,
                        score=seed.score,
                        source=seed.source,
                    )
                    for seed in seeds
                ],
                session_id=session_id,
            )
        )
    except Exception as e:
        logger.warning(f"Failed to record feedback event: {e}")


def cmd_search(args: argparse.Namespace) -> int:
    repo = Path(args.repo).resolve()
    if not repo.is_dir():
        print(f"[X] Repository not found: {repo}", file=sys.stderr)
        return 1

    try:
        filters = SearchFilters(
            include_globs=args.include_glob,
            exclude_globs=args.exclude_glob,
            source_code_only=args.source_code_only,
            include_languages=args.include_language,
            exclude_languages=args.exclude_language,
        )
        channels = build_query_channels(args.request, args.terms)
    except ValidationError as e:
        print(f"[X] Invalid request: {e.errors()[0]['msg']}", file=sys.stderr)
        return 1

    try:
        service = build_search_service(repo, Path(args.chunks), Path(args.index_dir))
    except (OSError, ValueError) as e:
        print(f"[X] Failed to load index: {e}", file=sys.stderr)
        print(INDEX_HINT, file=sys.stderr)
        return 1

    try:
        pack = service.build_context_pack(args.request, channels=channels, filters=filters)
    except ChannelError as e:
        print(f"[X] Search failed at the {e.stage} stage: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"[X] Invalid filters: {e}", file=sys.stderr)
        return 1

    raw_top_n = normalize_raw_top_n(args.raw_top_n)
    raw_blocks = (
        collect_raw_code_blocks(service.chunk_store, pack.seeds, raw_top_n) if args.mode == "raw" else []
    )
    print(
        format_response(
            pack,
            mode=args.mode,
            raw_blocks=raw_blocks,
            raw_top_n=raw_top_n,
            include_globs=filters.include_globs,
            exclude_globs=filters.exclude_globs,
        )
    )

    if not args.no_feedback:
        record_feedback(args.request, args.terms, pack.seeds, args.session)
    return 0


def format_benchmark_summary(dataset: Path, summary: BenchmarkSummary, k_values: list[int]) -> str:
    lines = [
        "=== Offline Benchmark Summary ===",
        f"Dataset : {dataset.resolve()}",
        f"Queries : {summary.query_count}",
        f"MRR     : {summary.mrr:.6f}",
    ]
    lines.extend(f"Recall@{k}: {summary.recall_at_k[str(k)]:.6f}" for k in k_values)
    lines.extend(f"nDCG@{k}: {summary.ndcg_at_k[str(k)]:.6f}" for k in k_values)
    return "\n".join(lines)


def format_leaderboard(result: AutoTuneResult) -> str:
    lines = [
        "=== Auto-Tune Leaderboard ===",
        f"Target     : {result.target}",
        f"k values   : {', '.join(str(k) for k in result.k_values)}",
        f"Candidates : {result.total_candidates}",
        "",
        f"{'#':>3}  {'w_vec':>6}  {'w_lex':>6}  {'rrf_k0':>7}  {'top_m':>6}  {'target':>8}  {'mrr':>8}",
    ]
    for rank, candidate in enumerate(result.leaderboard, start=1):
        config = candidate.config
        lines.append(
            f"{rank:>3}  {config.w_vec:>6.3f}  {config.w_lex:>6.3f}  {config.rrf_k0:>7g}  "
            f"{config.fused_top_m:>6}  {candidate.target_score:>8.4f}  {candidate.summary.mrr:>8.4f}"
        )
    return "\n".join(lines)


def cmd_tune(args: argparse.Namespace) -> int:
    try:
        grid = AutoTuneGrid.model_validate(json.loads(args.grid)) if args.grid else None
        cases = load_auto_tune_dataset(Path(args.dataset))
        result = run_auto_tune(
            cases,
            target=args.target,
            k_values=parse_k_values(args.k, AUTO_TUNE_DEFAULT_K_VALUES),
            grid=grid,
            top_n=args.top,
            max_workers=args.workers,
        )
    except (json.JSONDecodeError, ValidationError) as e:
        print(f"[X] Invalid --grid: {e}", file=sys.stderr)
        print('Hint: --grid \'{"wVec": [0.4, 0.6], "rrfK0": [20], "fusedTopM": [60]}\'', file=sys.stderr)
        return 1
    except AutoTuneConfigError as e:
        print(f"[X] Invalid auto-tune option '{e.field}': {e}", file=sys.stderr)
        print("Hint: w_vec in (0, 1), rrf_k0 > 0, fused_top_m a positive integer, target mrr|recall@k|ndcg@k",
              file=sys.stderr)
        return 1
    except (DatasetError, OSError) as e:
        print(f"[X] Failed to load dataset: {e}", file=sys.stderr)
        print(DATASET_HINT, file=sys.stderr)
        return 1

    print(format_leaderboard(result))

    if args.write_config:
        result.best.config.save(FUSION_CONFIG_FILE)
        print(f"\n[+] Saved best fusion config to {FUSION_CONFIG_FILE}")
    return 0


def cmd_benchmark(args: argparse.Namespace) -> int:
    try:
        k_values = sorted({int(k) for k in parse_k_values(args.k, BENCHMARK_DEFAULT_K_VALUES) if k >= 1})
        if not k_values:
            raise AutoTuneConfigError("--k must contain at least one positive integer", field="k_values")
        cases = load_benchmark_dataset(Path(args.dataset))
    except AutoTuneConfigError as e:
        print(f"[X] {e}", file=sys.stderr)
        return 1
    except (DatasetError, OSError) as e:
        print(f"[X] Failed to load dataset: {e}", file=sys.stderr)
        print(DATASET_HINT, file=sys.stderr)
        return 1

    summary = evaluate_benchmark_cases(cases, k_values)
    print(format_benchmark_summary(Path(args.dataset), summary, k_values))
    return 0


def format_feedback_summary(summary: FeedbackSummary) -> str:
    lines = [
        f"=== Feedback Summary (last {summary.window_days} days) ===",
        f"Events              : {summary.total_events}",
        f"Zero-hit rate       : {summary.zero_hit_rate:.2%}",
        f"Implicit success    : {summary.implicit_success_rate:.2%}",
        f"Positive signals    : {summary.positive_signal_count}",
        f"Negative signals    : {summary.negative_signal_count}",
    ]
    if summary.signal_breakdown:
        lines.append("")
        lines.append("Signals by type:")
        lines.extend(
            f"  {item.type:<16} count={item.count} weight={item.total_weight:+.2f}"
            for item in summary.signal_breakdown
        )
    if summary.top_files:
        lines.append("")
        lines.append("Top files:")
        lines.extend(
            f"  {i}. {item.file_path} weight={item.total_weight:.2f} hits={item.hit_count}"
            for i, item in enumerate(summary.top_files, start=1)
        )
    return "\n".join(lines)


def cmd_feedback(args: argparse.Namespace) -> int:
    try:
        summary = FeedbackStore(FEEDBACK_DB_FILE).summarize(days=args.days, top=args.top)
    except (OSError, sqlite3.Error) as e:
        print(f"[X] Failed to read feedback log {FEEDBACK_DB_FILE}: {e}", file=sys.stderr)
        print("Hint: set CODECONTEXT_DATA_DIR or FEEDBACK_DB_FILE to a writable location.", file=sys.stderr)
        return 1

    print(format_feedback_summary(summary))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codecontext",
        description="Hybrid code search with context packing, feedback and fusion tuning",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Retrieve packed code context")
    search.add_argument("repo", help="Repository root")
    search.add_argument("request", help="Natural-language information request")
    search.add_argument("--terms", nargs="*", default=[], help="Exact identifiers to boost lexically")
    search.add_argument("--include-glob", action="append", default=[], help="Keep only matching paths")
    search.add_argument("--exclude-glob", action="append", default=[], help="Drop matching paths")
    search.add_argument("--source-code-only", action="store_true", help="Drop docs/config languages")
    search.add_argument("--include-language", action="append", default=[], help="Keep only this language")
    search.add_argument("--exclude-language", action="append", default=[], help="Drop this language")
    search.add_argument("--mode", choices=["overview", "raw"], default="overview")
    search.add_argument("--raw-top-n", type=int, default=None, help="Raw blocks to show (1-20)")
    search.add_argument("--chunks", default=str(CHUNKS_FILE), help="Chunks JSON file")
    search.add_argument("--index-dir", default=str(INDEX_DIR), help="FAISS index directory")
    search.add_argument("--session", default=None, help="Feedback session id")
    search.add_argument("--no-feedback", action="store_true", help="Do not record a feedback event")
    search.set_defaults(func=cmd_search)

    tune = subparsers.add_parser("tune", help="Grid-search fusion parameters")
    tune.add_argument("dataset", help="Replay dataset (.json or .jsonl)")
    tune.add_argument("--target", default="mrr", help="mrr | recall[@k] | ndcg[@k]")
    tune.add_argument("--k", default=None, help="Comma-separated k values (default 1,3,5)")
    tune.add_argument("--top", type=int, default=5, help="Leaderboard size")
    tune.add_argument("--grid", default=None, help='JSON grid, e.g. {"wVec": [0.5, 0.7]}')
    tune.add_argument("--workers", type=int, default=None, help="Process pool size")
    tune.add_argument("--write-config", action="store_true", help="Save the best config for search")
    tune.set_defaults(func=cmd_tune)

    benchmark = subparsers.add_parser("benchmark", help="Score a labeled benchmark dataset")
    benchmark.add_argument("dataset", help="Benchmark dataset (.json or .jsonl)")
    benchmark.add_argument("--k", default=None, help="Comma-separated k values (default 1,3,5,10)")
    benchmark.set_defaults(func=cmd_benchmark)

    feedback = subparsers.add_parser("feedback", help="Summarize implicit feedback")
    feedback.add_argument("--days", type=int, default=7, help="Trailing window in days")
    feedback.add_argument("--top", type=int, default=10, help="Number of top files")
    feedback.set_defaults(func=cmd_feedback)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    return args.func(args)


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n\nInterrupted.")
        sys.exit(130)
