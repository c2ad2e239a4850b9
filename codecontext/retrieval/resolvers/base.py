"""Shared resolution policy for per-language import resolvers.

Every resolver follows the same steps:
1. Normalize the import string to a path-like suffix
2. Collect repository files ending with that suffix (on a path boundary)
3. If none, fall back to files named after the leaf segment
4. Break ties with the longest common path prefix with the importing file

Candidates are examined in sorted order and the first one wins among equal
prefix lengths, so resolution is deterministic for a given file set.

Author: Hay Hoffman
"""

import re
from collections.abc import Callable, Iterable, Sequence
from collections.abc import Set as AbstractSet
from dataclasses import dataclass

__all__ = [
    "ImportResolver",
    "ExtractFn",
    "ResolveFn",
    "common_prefix_length",
    "pick_closest",
    "ends_with_path",
    "collect_suffix_candidates",
    "resolve_relative",
    "ordered_matches",
]

ExtractFn = Callable[[str], list[str]]
ResolveFn = Callable[[str, str, AbstractSet[str]], "str | None"]


@dataclass(frozen=True)
class ImportResolver:
    """One language variant of the resolver set.

    Attributes:
        language: Language tag
        extensions: File extensions handled by this resolver (lowercase)
        extract_fn: Returns raw import strings in source order
        resolve_fn: Maps (import, current_file, all_files) to a repo path or None
    """

    language: str
    extensions: tuple[str, ...]
    extract_fn: ExtractFn
    resolve_fn: ResolveFn

    def supports(self, file_path: str) -> bool:
        return file_path.lower().endswith(self.extensions)

    def extract(self, content: str) -> list[str]:
        return self.extract_fn(content)

    def resolve(self, import_str: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
        return self.resolve_fn(import_str, current_file, all_files)


def common_prefix_length(left: str, right: str) -> int:
    """Number of leading path segments two repository paths share.

    Examples:
        common_prefix_length("src/auth/a.py", "src/auth/b.py") -> 2
        common_prefix_length("src/auth/a.py", "lib/auth/a.py") -> 0
    """
    count = 0
    for left_part, right_part in zip(left.split("/"), right.split("/")):
        if left_part != right_part:
            break
        count += 1
    return count


def pick_closest(candidates: Iterable[str], current_file: str) -> str | None:
    """Candidate sharing the longest path prefix with current_file.

    Ties go to the first candidate in sorted order.
    """
    best: str | None = None
    best_len = -1
    for candidate in sorted(set(candidates)):
        prefix_len = common_prefix_length(current_file, candidate)
        if prefix_len > best_len:
            best, best_len = candidate, prefix_len
    return best


def ends_with_path(file_path: str, suffix: str) -> bool:
    """True if file_path is suffix or ends with '/' + suffix."""
    return file_path == suffix or file_path.endswith("/" + suffix)


def collect_suffix_candidates(
    module_path: str,
    all_files: AbstractSet[str],
    file_suffixes: Sequence[str],
) -> list[str]:
    """Files matching module_path + one of file_suffixes, else leaf-name matches.

    Args:
        module_path: Normalized slash-separated module path ("foo/bar")
        all_files: Repository-relative file paths
        file_suffixes: Suffixes appended to the module path (".rb", "/index.rb")

    Returns:
        Sorted candidate paths (may be empty)
    """
    module_path = module_path.strip("/")
    if not module_path:
        return []

    suffixes = [module_path + s for s in file_suffixes]
    candidates = [f for f in all_files if any(ends_with_path(f, s) for s in suffixes)]
    if candidates:
        return sorted(candidates)

    leaf = module_path.rsplit("/", 1)[-1]
    if not leaf or leaf == module_path:
        return []

    leaf_suffixes = [leaf + s for s in file_suffixes]
    return sorted(f for f in all_files if any(ends_with_path(f, s) for s in leaf_suffixes))


def resolve_relative(relative_path: str, current_file: str) -> str | None:
    """Join a './' or '../' path onto the importing file's directory.

    Returns:
        Normalized repository-relative path, or None if it escapes the root
    """
    parts = current_file.split("/")[:-1] + relative_path.split("/")
    resolved: list[str] = []
    for part in parts:
        if not part or part == ".":
            continue
        if part == "..":
            if not resolved:
                return None
            resolved.pop()
        else:
            resolved.append(part)
    return "/".join(resolved) if resolved else None


def ordered_matches(content: str, patterns: Sequence[tuple[re.Pattern, Callable[[re.Match], Iterable[str]]]]) -> list[str]:
    """Run several patterns and return their outputs in source order.

    Args:
        content: Source text
        patterns: (compiled pattern, match -> import strings) pairs

    Returns:
        Import strings ordered by match position
    """
    found: list[tuple[int, int, str]] = []
    for pattern_index, (pattern, convert) in enumerate(patterns):
        for match in pattern.finditer(content):
            for value in convert(match):
                found.append((match.start(), pattern_index, value))
    found.sort(key=lambda x: (x[0], x[1]))
    return [value for _, _, value in found]
