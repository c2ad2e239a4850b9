"""Path and language filters for search candidates.

Path filtering uses fnmatch-style globs against repository-relative paths.
Language filtering is validated up front (conflicting or unknown languages
raise ValueError) and normalized into a whitelist passed to the channels plus
a blacklist applied to candidates.

Author: Hay Hoffman
"""

import fnmatch
import logging
from collections.abc import Sequence

from models.chunk import ChunkRecord
from models.retrieval import SearchFilters
from settings import EXTENSION_LANGUAGES, NON_CODE_LANGUAGES

logger = logging.getLogger(__name__)

__all__ = [
    "PathFilter",
    "CandidateFilter",
    "allowed_languages",
    "code_languages",
    "validate_language_filter_conflicts",
    "validate_language_whitelist",
    "normalize_language_filter",
]


def allowed_languages() -> list[str]:
    """All known language tags (plus 'unknown'), sorted."""
    return sorted(set(EXTENSION_LANGUAGES.values()) | {"unknown"})


def code_languages() -> list[str]:
    """Known languages excluding documentation/configuration formats."""
    return sorted(set(EXTENSION_LANGUAGES.values()) - NON_CODE_LANGUAGES)


def validate_language_filter_conflicts(filters: SearchFilters) -> None:
    """Reject mutually exclusive language options.

    Raises:
        ValueError: If source_code_only is combined with include_languages, or
            include and exclude lists intersect
    """
    if filters.source_code_only and filters.include_languages:
        raise ValueError("source_code_only and include_languages are mutually exclusive")

    intersection = [lang for lang in filters.include_languages if lang in filters.exclude_languages]
    if intersection:
        raise ValueError(
            f"include_languages and exclude_languages overlap: {', '.join(intersection)}"
        )


def validate_language_whitelist(languages: Sequence[str] | None) -> None:
    """Reject unknown language tags.

    Raises:
        ValueError: If any language is not a known tag
    """
    if not languages:
        return

    allowed = set(allowed_languages())
    invalid = [lang for lang in languages if lang not in allowed]
    if invalid:
        raise ValueError(
            f"Unknown languages: {', '.join(invalid)}. Valid: {', '.join(sorted(allowed))}"
        )


def normalize_language_filter(filters: SearchFilters) -> list[str] | None:
    """Collapse language options into a single whitelist.

    Returns:
        Language whitelist, or None when no whitelist applies (no options, or
        only exclude_languages, which is applied as a blacklist instead)
    """
    if filters.source_code_only:
        result = code_languages()
    elif filters.include_languages:
        result = list(filters.include_languages)
    else:
        return None

    excluded = set(filters.exclude_languages)
    result = [lang for lang in result if lang not in excluded]
    return result or None


class PathFilter:
    """Include/exclude glob filter for repository-relative paths.

    An empty include list keeps every path; exclusion wins over inclusion.

    Attributes:
        include_globs: Keep only paths matching one of these
        exclude_globs: Drop paths matching any of these
    """

    def __init__(self, include_globs: Sequence[str] = (), exclude_globs: Sequence[str] = ()):
        self.include_globs = self._normalize(include_globs)
        self.exclude_globs = self._normalize(exclude_globs)

    @staticmethod
    def _normalize(globs: Sequence[str]) -> list[str]:
        normalized = []
        for glob in globs:
            glob = glob.strip().replace("\\", "/")
            if glob.startswith("./"):
                glob = glob[2:]
            if glob and glob not in normalized:
                normalized.append(glob)
        return normalized

    @staticmethod
    def _matches(file_path: str, pattern: str) -> bool:
        """Check if file path matches a glob pattern.

        "**/" prefixes also match files at the repository root, and a pattern
        ending with "/" matches everything below that folder.
        """
        if pattern.endswith("/"):
            pattern = pattern + "**"
        if fnmatch.fnmatch(file_path, pattern):
            return True
        if pattern.startswith("**/"):
            return fnmatch.fnmatch(file_path, pattern[3:])
        return False

    @property
    def is_empty(self) -> bool:
        return not self.include_globs and not self.exclude_globs

    def accepts(self, file_path: str) -> bool:
        if any(self._matches(file_path, p) for p in self.exclude_globs):
            return False
        if not self.include_globs:
            return True
        return any(self._matches(file_path, p) for p in self.include_globs)


class CandidateFilter:
    """Validated path + language filter for one request.

    Attributes:
        path_filter: Include/exclude glob filter
        language_filter: Language whitelist passed to channels (None = all)
        exclude_languages: Language blacklist
    """

    def __init__(self, filters: SearchFilters | None = None):
        """Validate and normalize request filters.

        Raises:
            ValueError: If language options conflict or name unknown languages
        """
        filters = filters or SearchFilters()
        validate_language_filter_conflicts(filters)
        validate_language_whitelist(filters.include_languages)
        validate_language_whitelist(filters.exclude_languages)

        self.path_filter = PathFilter(filters.include_globs, filters.exclude_globs)
        self.language_filter = normalize_language_filter(filters)
        self.exclude_languages = frozenset(filters.exclude_languages)

    @property
    def is_empty(self) -> bool:
        return self.path_filter.is_empty and self.language_filter is None and not self.exclude_languages

    def accepts(self, record: ChunkRecord) -> bool:
        language = record.language or "unknown"
        if self.language_filter is not None and language not in self.language_filter:
            return False
        if language in self.exclude_languages:
            return False
        return self.path_filter.accepts(record.file_path)
