"""Ruby resolver for require, require_relative and autoload.

Extracted strings carry their form as a prefix ("require:foo/bar",
"require_relative:../x", "autoload:foo/bar") because the forms resolve
differently.
"""

import re
from collections.abc import Set as AbstractSet

from codecontext.retrieval.resolvers.base import (
    ImportResolver,
    collect_suffix_candidates,
    ordered_matches,
    pick_closest,
    resolve_relative,
)

__all__ = ["RUBY_RESOLVER"]

_PATTERNS = [
    (
        re.compile(r"""^\s*require\s+['"]([^'"]+)['"]""", re.MULTILINE),
        lambda m: [f"require:{m.group(1)}"],
    ),
    (
        re.compile(r"""^\s*require_relative\s+['"]([^'"]+)['"]""", re.MULTILINE),
        lambda m: [f"require_relative:{m.group(1)}"],
    ),
    (
        re.compile(r"""^\s*autoload\s+:\w+\s*,\s*['"]([^'"]+)['"]""", re.MULTILINE),
        lambda m: [f"autoload:{m.group(1)}"],
    ),
]

_FILE_SUFFIXES = (".rb", "/index.rb")


def extract_ruby_imports(content: str) -> list[str]:
    return ordered_matches(content, _PATTERNS)


def _resolve_relative(relative_path: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
    base = resolve_relative(relative_path, current_file)
    if base is None:
        return None
    if base.endswith(".rb"):
        return base if base in all_files else None
    for suffix in _FILE_SUFFIXES:
        if base + suffix in all_files:
            return base + suffix
    return None


def _resolve_logical(logical_path: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
    # foo/bar -> foo/bar.rb
    normalized = re.sub(r"\.rb$", "", logical_path.lstrip("/"))
    if not normalized:
        return None
    candidates = collect_suffix_candidates(normalized, all_files, _FILE_SUFFIXES)
    return pick_closest(candidates, current_file)


def resolve_ruby_import(import_str: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
    form, _, path = import_str.partition(":")
    if not path:
        return None
    if form == "require_relative":
        return _resolve_relative(path, current_file, all_files)
    if form in ("require", "autoload"):
        return _resolve_logical(path, current_file, all_files)
    return None


RUBY_RESOLVER = ImportResolver(
    language="ruby",
    extensions=(".rb",),
    extract_fn=extract_ruby_imports,
    resolve_fn=resolve_ruby_import,
)
