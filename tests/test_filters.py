"""Tests for path globs and language filters.

Author: Hay Hoffman
"""

import pytest

from codecontext.retrieval.filters import (
    CandidateFilter,
    PathFilter,
    allowed_languages,
    code_languages,
    normalize_language_filter,
    validate_language_filter_conflicts,
    validate_language_whitelist,
)
from fakes import make_record
from models.retrieval import SearchFilters


class TestPathFilter:
    """Tests for PathFilter."""

    def test_empty_filter_accepts_everything(self):
        path_filter = PathFilter()

        assert path_filter.is_empty
        assert path_filter.accepts("any/where.py")

    @pytest.mark.parametrize(
        "pattern,path,expected",
        [
            ("src/*.py", "src/app.py", True),
            ("src/", "src/deep/nested/x.ts", True),
            ("src/", "lib/x.ts", False),
            ("**/*.py", "root.py", True),
            ("**/*.py", "pkg/mod.py", True),
            ("./docs/*", "docs/readme.md", True),
            ("  tests\\*  ", "tests/test_x.py", True),
        ],
    )
    def test_include_patterns(self, pattern, path, expected):
        assert PathFilter(include_globs=[pattern]).accepts(path) is expected

    def test_exclude_wins_over_include(self):
        path_filter = PathFilter(include_globs=["src/*"], exclude_globs=["*_test.go"])

        assert not path_filter.accepts("src/store_test.go")
        assert path_filter.accepts("src/store.go")

    def test_patterns_are_deduplicated(self):
        path_filter = PathFilter(include_globs=["src/*", "./src/*", " src/* "])

        assert path_filter.include_globs == ["src/*"]


class TestLanguageOptions:
    """Tests for language validation and normalization."""

    def test_allowed_languages_include_unknown(self):
        languages = allowed_languages()

        assert "unknown" in languages
        assert languages == sorted(languages)

    def test_code_languages_exclude_docs(self):
        languages = code_languages()

        assert "python" in languages
        assert "markdown" not in languages and "yaml" not in languages

    def test_source_code_only_conflicts_with_include(self):
        with pytest.raises(ValueError, match="mutually exclusive"):
            validate_language_filter_conflicts(
                SearchFilters(source_code_only=True, include_languages=["python"])
            )

    def test_include_exclude_overlap(self):
        with pytest.raises(ValueError, match="go"):
            validate_language_filter_conflicts(
                SearchFilters(include_languages=["go", "python"], exclude_languages=["go"])
            )

    def test_unknown_language_rejected(self):
        with pytest.raises(ValueError, match="Unknown languages: cobol"):
            validate_language_whitelist(["python", "cobol"])

    def test_whitelist_subtracts_excludes(self):
        filters = SearchFilters(source_code_only=True, exclude_languages=["python"])

        result = normalize_language_filter(filters)

        assert "python" not in result
        assert "go" in result

    @pytest.mark.parametrize(
        "filters",
        [
            SearchFilters(),
            SearchFilters(exclude_languages=["python"]),
            SearchFilters(include_languages=["python"], exclude_languages=[]),
        ],
    )
    def test_whitelist_absent_or_explicit(self, filters):
        expected = filters.include_languages or None

        assert normalize_language_filter(filters) == expected


class TestCandidateFilter:
    """Tests for CandidateFilter."""

    def test_default_is_empty(self):
        candidate_filter = CandidateFilter()

        assert candidate_filter.is_empty
        assert candidate_filter.accepts(make_record("x.md", 0, language="markdown"))

    def test_blacklist_applies_without_whitelist(self):
        candidate_filter = CandidateFilter(SearchFilters(exclude_languages=["markdown"]))

        assert candidate_filter.language_filter is None
        assert not candidate_filter.accepts(make_record("x.md", 0, language="markdown"))
        assert candidate_filter.accepts(make_record("x.py", 0))

    def test_missing_language_counts_as_unknown(self):
        candidate_filter = CandidateFilter(SearchFilters(include_languages=["unknown"]))

        assert candidate_filter.accepts(make_record("Makefile", 0, language=""))
        assert not candidate_filter.accepts(make_record("x.py", 0))

    def test_path_and_language_combined(self):
        candidate_filter = CandidateFilter(
            SearchFilters(include_globs=["src/"], include_languages=["python"])
        )

        assert candidate_filter.accepts(make_record("src/a.py", 0))
        assert not candidate_filter.accepts(make_record("lib/a.py", 0))
        assert not candidate_filter.accepts(make_record("src/a.go", 0, language="go"))
