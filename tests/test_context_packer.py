"""Tests for span merging and budgeted context packing.

Author: Hay Hoffman
"""

import pytest

from codecontext.retrieval.context_packer import ContextPacker, merge_spans, offset_to_line, span_end_line
from fakes import FakeChunkStore, make_record, scored


# =============================================================================
# Fixtures
# =============================================================================

FILE_A = "line1\nline2\nline3\nline4\nline5\n"
FILE_B = "x" * 40


@pytest.fixture
def store() -> FakeChunkStore:
    return FakeChunkStore(contents={"a.py": FILE_A, "b.py": FILE_B})


def _chunk(path: str, index: int, start: int, end: int, score: float, breadcrumb: str = ""):
    return scored(make_record(path, index, raw_start=start, raw_end=end, breadcrumb=breadcrumb), score)


# =============================================================================
# Helpers
# =============================================================================


class TestOffsetToLine:

    @pytest.mark.parametrize("offset,expected", [(0, 1), (5, 1), (6, 2), (12, 3), (30, 6)])
    def test_line_numbers(self, offset, expected):
        assert offset_to_line(FILE_A, offset) == expected

    @pytest.mark.parametrize(
        "start,end,expected",
        [(24, 30, 5), (6, 17, 3), (6, 12, 2), (6, 6, 2), (0, 1, 1)],
    )
    def test_span_end_line_uses_last_character(self, start, end, expected):
        assert span_end_line(FILE_A, start, end) == expected


class TestMergeSpans:
    """Tests for merge_spans."""

    def test_overlapping_and_touching_spans_merge(self):
        spans = merge_spans([
            _chunk("a.py", 0, 0, 6, 0.5, "low"),
            _chunk("a.py", 1, 6, 12, 0.9, "high"),
            _chunk("a.py", 2, 10, 14, 0.1),
        ])

        assert len(spans) == 1
        assert (spans[0].start, spans[0].end) == (0, 14)
        assert spans[0].score == pytest.approx(0.9)
        assert spans[0].breadcrumb == "high"

    def test_disjoint_spans_stay_separate_in_order(self):
        spans = merge_spans([_chunk("a.py", 1, 18, 24, 0.2), _chunk("a.py", 0, 0, 5, 0.3)])

        assert [(s.start, s.end) for s in spans] == [(0, 5), (18, 24)]
        assert spans[0].end < spans[1].start


# =============================================================================
# Packing
# =============================================================================


class TestContextPacker:
    """Tests for ContextPacker.pack."""

    def test_segments_carry_text_and_lines(self, store):
        packer = ContextPacker(store, max_segments_per_file=3, max_total_chars=1000)

        files = packer.pack([_chunk("a.py", 1, 6, 17, 0.7, "mid")])
        segment = files[0].segments[0]

        assert segment.text == "line2\nline3"
        assert (segment.start_line, segment.end_line) == (2, 3)
        assert segment.breadcrumb == "mid"
        assert segment.citation == "a.py:2-3"

    def test_files_ordered_by_best_score(self, store):
        packer = ContextPacker(store, max_segments_per_file=3, max_total_chars=1000)

        files = packer.pack([_chunk("a.py", 0, 0, 5, 0.4), _chunk("b.py", 0, 0, 10, 0.8)])

        assert [f.file_path for f in files] == ["b.py", "a.py"]

    def test_segment_cap_keeps_top_scores_in_position_order(self, store):
        packer = ContextPacker(store, max_segments_per_file=2, max_total_chars=1000)

        files = packer.pack([
            _chunk("a.py", 0, 0, 5, 0.9),
            _chunk("a.py", 1, 6, 11, 0.1),
            _chunk("a.py", 2, 12, 17, 0.5),
        ])

        assert [s.raw_start for s in files[0].segments] == [0, 12]

    def test_file_over_budget_is_dropped_and_packing_continues(self, store):
        packer = ContextPacker(store, max_segments_per_file=3, max_total_chars=20)

        files = packer.pack([_chunk("b.py", 0, 0, 40, 0.9), _chunk("a.py", 0, 0, 5, 0.5)])

        assert [f.file_path for f in files] == ["a.py"]
        assert sum(f.total_chars for f in files) <= 20

    def test_unreadable_file_is_skipped(self, store):
        packer = ContextPacker(store, max_segments_per_file=3, max_total_chars=1000)

        files = packer.pack([_chunk("missing.py", 0, 0, 5, 0.9), _chunk("a.py", 0, 0, 5, 0.5)])

        assert [f.file_path for f in files] == ["a.py"]

    def test_spans_past_end_of_file_are_clamped(self, store):
        packer = ContextPacker(store, max_segments_per_file=3, max_total_chars=1000)

        files = packer.pack([_chunk("a.py", 4, 24, 500, 0.5)])

        assert files[0].segments[0].text == "line5\n"
        assert (files[0].segments[0].start_line, files[0].segments[0].end_line) == (5, 5)
        assert files[0].segments[0].citation == "a.py:5-5"

    def test_rejects_non_positive_budgets(self, store):
        with pytest.raises(ValueError):
            ContextPacker(store, max_segments_per_file=0, max_total_chars=10)
