"""Tests for implicit feedback inference and the SQLite feedback store.

Author: Hay Hoffman
"""

import json

import pytest
from pydantic import ValidationError

from codecontext.feedback import FeedbackStore, infer_signals
from codecontext.feedback.feedback_loop import DAY_MS, file_stem_forms, jaccard_similarity, normalize_text
from models.feedback import FeedbackSeed, RetrievalEvent
from settings import NO_HIT_REWRITE_WEIGHT, PATH_PIN_WEIGHT

NOW_MS = 1_750_000_000_000


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store(tmp_path) -> FeedbackStore:
    return FeedbackStore(tmp_path / "nested" / "feedback.db")


def _seed(file_path: str, chunk_index: int = 0, score: float = 0.9) -> FeedbackSeed:
    return FeedbackSeed(
        chunk_id=f"{file_path}#{chunk_index}",
        file_path=file_path,
        chunk_index=chunk_index,
        score=score,
        source="rerank",
    )


def _event(query: str, seeds=(), session_id=None, terms=(), at: int = NOW_MS - 1000) -> RetrievalEvent:
    return RetrievalEvent(
        query=query,
        technical_terms=list(terms),
        seeds=list(seeds),
        session_id=session_id,
        created_at_ms=at,
    )


# =============================================================================
# Helpers
# =============================================================================


class TestTextHelpers:

    def test_normalize_text(self):
        assert normalize_text("  Find\tTHE   Token\n") == "find the token"

    def test_jaccard_of_empty_sets(self):
        assert jaccard_similarity([], []) == 0.0

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("src/UserService.ts", ["userservice", "user_service"]),
            ("lib/api-client.js", ["api-client", "apiclient"]),
            ("pkg/token_store.py", ["token_store", "tokenstore"]),
        ],
    )
    def test_file_stem_forms(self, path, expected):
        assert file_stem_forms(path) == expected


# =============================================================================
# Inference
# =============================================================================


class TestInferSignals:
    """Tests for infer_signals."""

    def test_path_pin_by_token(self):
        signals = infer_signals(
            "login", [], [_seed("src/UserService.ts")], _event("show user_service constructor")
        )

        assert len(signals) == 1
        assert signals[0].type == "path_pin"
        assert signals[0].weight == PATH_PIN_WEIGHT
        assert signals[0].target_file_path == "src/UserService.ts"
        assert json.loads(signals[0].evidence) == {"stem": "user_service", "matchedBy": "token"}

    def test_path_pin_by_substring(self):
        signals = infer_signals("login", [], [_seed("src/UserService.ts")], _event("where is userservicefactory"))

        assert json.loads(signals[0].evidence)["matchedBy"] == "text"

    def test_path_pin_from_technical_terms(self):
        signals = infer_signals("q", [], [_seed("app/cache.py")], _event("invalidate", terms=["Cache"]))

        assert [s.type for s in signals] == ["path_pin"]

    def test_duplicate_seed_pinned_once(self):
        seeds = [_seed("a/cache.py", 1), _seed("a/cache.py", 1), _seed("a/cache.py", 2)]

        signals = infer_signals("q", [], seeds, _event("cache eviction"))

        assert [s.target_chunk_id for s in signals] == ["a/cache.py#1", "a/cache.py#2"]

    def test_no_hit_rewrite(self):
        signals = infer_signals("find auth token refresh", [], [], _event("auth token refresh logic"))

        assert len(signals) == 1
        assert signals[0].type == "no_hit_rewrite"
        assert signals[0].weight == NO_HIT_REWRITE_WEIGHT
        assert signals[0].target_file_path is None
        assert json.loads(signals[0].evidence) == {"similarity": 0.6}

    def test_unrelated_query_after_no_hit(self):
        assert infer_signals("find auth token", [], [], _event("render chart colors")) == []

    def test_no_rewrite_when_previous_had_hits(self):
        signals = infer_signals("auth token", [], [_seed("x/other.py")], _event("auth token refresh"))

        assert signals == []


# =============================================================================
# Store
# =============================================================================


class TestFeedbackStore:
    """Tests for FeedbackStore.record_event and summarize."""

    def test_first_event_has_no_signals(self, store):
        result = store.record_event(_event("auth token refresh"))

        assert result.event_id == 1
        assert result.inferred_signals == []

    def test_rewrite_recorded_against_previous_event(self, store):
        store.record_event(_event("find auth token refresh"))
        result = store.record_event(_event("auth token refresh logic"))

        assert [s.type for s in result.inferred_signals] == ["no_hit_rewrite"]

    def test_sessions_are_isolated(self, store):
        store.record_event(_event("find auth token refresh", session_id="alice"))

        other = store.record_event(_event("auth token refresh logic", session_id="bob"))
        same = store.record_event(_event("auth token refresh logic", session_id="alice"))

        assert other.inferred_signals == []
        assert [s.type for s in same.inferred_signals] == ["no_hit_rewrite"]

    def test_global_session_does_not_see_named_sessions(self, store):
        store.record_event(_event("find auth token refresh", session_id="alice"))

        result = store.record_event(_event("auth token refresh logic"))

        assert result.inferred_signals == []

    def test_events_persist_across_instances(self, tmp_path):
        db_path = tmp_path / "feedback.db"
        FeedbackStore(db_path).record_event(_event("q", seeds=[_seed("src/router.go")]))

        result = FeedbackStore(db_path).record_event(_event("router middleware"))

        assert [s.type for s in result.inferred_signals] == ["path_pin"]

    def test_empty_query_rejected(self):
        with pytest.raises(ValidationError):
            RetrievalEvent(query="   ")

    def test_summary(self, store):
        store.record_event(_event("stale query", at=NOW_MS - 10 * DAY_MS))
        store.record_event(_event("auth token refresh"))
        store.record_event(_event("auth token refresh flow", seeds=[_seed("src/auth/token_store.py")]))
        store.record_event(_event("token_store expiry"))

        summary = store.summarize(days=7, top=5, now_ms=NOW_MS)

        assert summary.since_ms == NOW_MS - 7 * DAY_MS
        assert summary.total_events == 3
        assert summary.zero_hit_events == 2
        assert summary.zero_hit_rate == pytest.approx(2 / 3)
        assert summary.positive_signal_count == 1
        assert summary.negative_signal_count == 1
        assert summary.implicit_success_rate == pytest.approx(1 / 3)
        assert [(b.type, b.count) for b in summary.signal_breakdown] == [("no_hit_rewrite", 1), ("path_pin", 1)]
        assert [(f.file_path, f.hit_count) for f in summary.top_files] == [("src/auth/token_store.py", 1)]

    def test_summary_defaults_for_invalid_window(self, store):
        summary = store.summarize(days=0, top=-1, now_ms=NOW_MS)

        assert summary.window_days == 7
        assert summary.total_events == 0
        assert summary.zero_hit_rate == 0.0
