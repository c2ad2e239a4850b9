"""Implicit relevance feedback from consecutive retrieval events.

Every executed search is appended to a SQLite log. When a new event is
recorded it is compared with the previous event of the same session:

- path_pin (+1): a file stem from the previous event's seeds appears in the
  new query, i.e. the caller came back for the same file
- no_hit_rewrite (-0.6): the previous event returned nothing and the new query
  is a close rewrite of it (token Jaccard >= 0.4)

Signals are written once and never updated. ``summarize`` aggregates events
and signals over a trailing window.

Author: Hay Hoffman
"""

import json
import logging
import re
import sqlite3
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path, PurePosixPath

from models.feedback import (
    FeedbackSeed,
    FeedbackSummary,
    InferredSignal,
    RecordEventResult,
    RetrievalEvent,
    SignalBreakdown,
    TopFile,
)
from settings import NO_HIT_REWRITE_MIN_JACCARD, NO_HIT_REWRITE_WEIGHT, PATH_PIN_WEIGHT

logger = logging.getLogger(__name__)

__all__ = [
    "FeedbackStore",
    "infer_signals",
    "jaccard_similarity",
    "normalize_text",
    "tokenize",
    "file_stem_forms",
]

DEFAULT_WINDOW_DAYS = 7
DEFAULT_TOP_FILES = 10
DAY_MS = 24 * 60 * 60 * 1000

_WHITESPACE_PATTERN = re.compile(r"\s+")
_TOKEN_PATTERN = re.compile(r"[a-z0-9_]+")
_SEPARATOR_PATTERN = re.compile(r"[_-]")
_CAMEL_BOUNDARY_PATTERN = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS retrieval_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at INTEGER NOT NULL,
    session_id TEXT,
    query TEXT NOT NULL,
    technical_terms TEXT NOT NULL,
    seed_count INTEGER NOT NULL,
    file_count INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS retrieval_event_chunks (
    event_id INTEGER NOT NULL,
    rank INTEGER NOT NULL,
    chunk_id TEXT NOT NULL,
    file_path TEXT NOT NULL,
    chunk_index INTEGER NOT NULL,
    score REAL NOT NULL,
    source TEXT NOT NULL,
    PRIMARY KEY(event_id, rank)
);

CREATE TABLE IF NOT EXISTS retrieval_signals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at INTEGER NOT NULL,
    source_event_id INTEGER NOT NULL,
    target_event_id INTEGER NOT NULL,
    signal_type TEXT NOT NULL,
    weight REAL NOT NULL,
    target_chunk_id TEXT,
    target_file_path TEXT,
    evidence TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_retrieval_events_created_at ON retrieval_events(created_at);
CREATE INDEX IF NOT EXISTS idx_retrieval_events_session ON retrieval_events(session_id);
CREATE INDEX IF NOT EXISTS idx_retrieval_chunks_event_id ON retrieval_event_chunks(event_id);
CREATE INDEX IF NOT EXISTS idx_retrieval_signals_created_at ON retrieval_signals(created_at);
CREATE INDEX IF NOT EXISTS idx_retrieval_signals_target_file ON retrieval_signals(target_file_path);
"""


def normalize_text(text: str) -> str:
    """Lowercase and collapse whitespace."""
    return _WHITESPACE_PATTERN.sub(" ", text.lower()).strip()


def tokenize(text: str) -> list[str]:
    return _TOKEN_PATTERN.findall(text.lower())


def jaccard_similarity(left_tokens: list[str], right_tokens: list[str]) -> float:
    """Set Jaccard similarity; 0.0 when both sides are empty."""
    left, right = set(left_tokens), set(right_tokens)
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def file_stem_forms(file_path: str) -> list[str]:
    """Lowercase stem variants that count as mentioning a file.

    Example: "src/UserService.ts" -> ["userservice", "user_service"]
    """
    stem = PurePosixPath(file_path.replace("\\", "/")).stem
    if not stem:
        return []

    forms = [stem.lower(), _SEPARATOR_PATTERN.sub("", stem.lower()), _CAMEL_BOUNDARY_PATTERN.sub("_", stem).lower()]
    return list(dict.fromkeys(form for form in forms if form))


def _search_text(query: str, technical_terms: list[str]) -> str:
    return normalize_text(" ".join(part for part in [query, *technical_terms] if part))


def infer_signals(
    previous_query: str,
    previous_terms: list[str],
    previous_seeds: list[FeedbackSeed],
    current: RetrievalEvent,
) -> list[InferredSignal]:
    """Signals implied by ``current`` following the previous event.

    Args:
        previous_query: Query of the previous event
        previous_terms: Technical terms of the previous event
        previous_seeds: Seeds returned by the previous event, in rank order
        current: The event being recorded

    Returns:
        path_pin signals (one per matching previous chunk) followed by at most
        one no_hit_rewrite signal
    """
    signals: list[InferredSignal] = []

    current_text = _search_text(current.query.strip(), current.technical_terms)
    current_tokens = set(tokenize(current_text))

    pinned: set[str] = set()
    for seed in previous_seeds:
        forms = file_stem_forms(seed.file_path)
        token_hit = next((form for form in forms if form in current_tokens), None)
        text_hit = next((form for form in forms if form in current_text), None)
        if token_hit is None and text_hit is None:
            continue

        key = f"{seed.file_path}#{seed.chunk_index}"
        if key in pinned:
            continue
        pinned.add(key)

        signals.append(
            InferredSignal(
                type="path_pin",
                weight=PATH_PIN_WEIGHT,
                target_chunk_id=seed.chunk_id,
                target_file_path=seed.file_path,
                evidence=json.dumps({
                    "stem": token_hit or text_hit,
                    "matchedBy": "token" if token_hit else "text",
                }),
            )
        )

    if not previous_seeds:
        similarity = jaccard_similarity(
            tokenize(_search_text(previous_query, previous_terms)),
            list(current_tokens),
        )
        if similarity >= NO_HIT_REWRITE_MIN_JACCARD:
            signals.append(
                InferredSignal(
                    type="no_hit_rewrite",
                    weight=NO_HIT_REWRITE_WEIGHT,
                    evidence=json.dumps({"similarity": round(similarity, 4)}),
                )
            )

    return signals


class FeedbackStore:
    """Append-only SQLite log of retrieval events and inferred signals.

    Attributes:
        db_path: SQLite database file
    """

    def __init__(self, db_path: Path):
        """Open (and create if missing) the feedback database.

        Args:
            db_path: SQLite database file; parent directories are created
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Serializes "read previous event + insert" so signals are inferred
        # against a stable predecessor
        self._lock = threading.Lock()

        with self._connection() as conn:
            conn.executescript(_SCHEMA)

        logger.info(f"Feedback store ready: {self.db_path}")

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()

    def _previous_event(
        self, conn: sqlite3.Connection, session_id: str | None
    ) -> tuple[int, str, list[str], list[FeedbackSeed]] | None:
        row = conn.execute(
            "SELECT id, query, technical_terms FROM retrieval_events "
            "WHERE session_id IS ? ORDER BY id DESC LIMIT 1",
            (session_id,),
        ).fetchone()
        if row is None:
            return None

        event_id, query, raw_terms = row
        try:
            terms = [t.strip() for t in json.loads(raw_terms) if isinstance(t, str) and t.strip()]
        except (json.JSONDecodeError, TypeError):
            terms = []

        seeds = [
            FeedbackSeed(chunk_id=cid, file_path=fp, chunk_index=idx, score=score, source=source)
            for cid, fp, idx, score, source in conn.execute(
                "SELECT chunk_id, file_path, chunk_index, score, source "
                "FROM retrieval_event_chunks WHERE event_id = ? ORDER BY rank ASC",
                (event_id,),
            )
        ]
        return event_id, query, terms, seeds

    def record_event(self, event: RetrievalEvent) -> RecordEventResult:
        """Append an event and persist the signals inferred against its predecessor.

        Args:
            event: Executed search (query, terms, ranked seeds, session)

        Returns:
            RecordEventResult with the new event id and inferred signals
        """
        query = event.query.strip()
        terms = [t.strip() for t in event.technical_terms if t.strip()]
        created_at = event.created_at_ms if event.created_at_ms is not None else int(time.time() * 1000)

        with self._lock, self._connection() as conn:
            with conn:
                previous = self._previous_event(conn, event.session_id)

                cursor = conn.execute(
                    "INSERT INTO retrieval_events(created_at, session_id, query, technical_terms, seed_count, file_count) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        created_at,
                        event.session_id,
                        query,
                        json.dumps(terms),
                        len(event.seeds),
                        len({seed.file_path for seed in event.seeds}),
                    ),
                )
                event_id = cursor.lastrowid

                conn.executemany(
                    "INSERT INTO retrieval_event_chunks(event_id, rank, chunk_id, file_path, chunk_index, score, source) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    [
                        (event_id, rank, s.chunk_id, s.file_path, s.chunk_index, s.score, s.source)
                        for rank, s in enumerate(event.seeds)
                    ],
                )

                signals: list[InferredSignal] = []
                if previous is not None:
                    previous_id, previous_query, previous_terms, previous_seeds = previous
                    signals = infer_signals(previous_query, previous_terms, previous_seeds, event)
                    conn.executemany(
                        "INSERT INTO retrieval_signals(created_at, source_event_id, target_event_id, signal_type, "
                        "weight, target_chunk_id, target_file_path, evidence) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                        [
                            (
                                created_at,
                                previous_id,
                                event_id,
                                signal.type,
                                signal.weight,
                                signal.target_chunk_id,
                                signal.target_file_path,
                                signal.evidence,
                            )
                            for signal in signals
                        ],
                    )

        logger.info(
            f"Recorded retrieval event {event_id}: {len(event.seeds)} seeds, {len(signals)} signals"
        )
        return RecordEventResult(event_id=event_id, inferred_signals=signals)

    def summarize(
        self,
        days: int = DEFAULT_WINDOW_DAYS,
        top: int = DEFAULT_TOP_FILES,
        now_ms: int | None = None,
    ) -> FeedbackSummary:
        """Aggregate events and signals over a trailing window.

        Args:
            days: Window length (non-positive -> 7)
            top: Number of top files (non-positive -> 10)
            now_ms: Window end in epoch milliseconds (None = now)

        Returns:
            FeedbackSummary for the window
        """
        days = int(days) if days and days > 0 else DEFAULT_WINDOW_DAYS
        top = int(top) if top and top > 0 else DEFAULT_TOP_FILES
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        since = now_ms - days * DAY_MS

        with self._connection() as conn:
            total_events, zero_hit_events = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(CASE WHEN seed_count = 0 THEN 1 ELSE 0 END), 0) "
                "FROM retrieval_events WHERE created_at >= ?",
                (since,),
            ).fetchone()

            positive, negative, success_events = conn.execute(
                "SELECT COALESCE(SUM(CASE WHEN weight > 0 THEN 1 ELSE 0 END), 0), "
                "COALESCE(SUM(CASE WHEN weight < 0 THEN 1 ELSE 0 END), 0), "
                "COUNT(DISTINCT CASE WHEN weight > 0 THEN source_event_id END) "
                "FROM retrieval_signals WHERE created_at >= ?",
                (since,),
            ).fetchone()

            breakdown = [
                SignalBreakdown(type=signal_type, count=count, total_weight=float(total_weight or 0))
                for signal_type, count, total_weight in conn.execute(
                    "SELECT signal_type, COUNT(*), SUM(weight) FROM retrieval_signals "
                    "WHERE created_at >= ? GROUP BY signal_type ORDER BY signal_type ASC",
                    (since,),
                )
            ]

            top_files = [
                TopFile(file_path=file_path, total_weight=float(total_weight or 0), hit_count=hit_count)
                for file_path, hit_count, total_weight in conn.execute(
                    "SELECT target_file_path, COUNT(*) AS hit_count, SUM(weight) AS total_weight "
                    "FROM retrieval_signals "
                    "WHERE created_at >= ? AND target_file_path IS NOT NULL AND weight > 0 "
                    "GROUP BY target_file_path "
                    "ORDER BY total_weight DESC, hit_count DESC, target_file_path ASC "
                    "LIMIT ?",
                    (since, top),
                )
            ]

        return FeedbackSummary(
            window_days=days,
            since_ms=since,
            total_events=total_events,
            zero_hit_events=zero_hit_events,
            zero_hit_rate=zero_hit_events / total_events if total_events else 0.0,
            implicit_success_rate=success_events / total_events if total_events else 0.0,
            positive_signal_count=positive,
            negative_signal_count=negative,
            signal_breakdown=breakdown,
            top_files=top_files,
        )
