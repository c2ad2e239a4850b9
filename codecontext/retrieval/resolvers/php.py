"""PHP use-statement resolver (namespace -> PSR-4 style path suffix)."""

import re
from collections.abc import Set as AbstractSet

from codecontext.retrieval.resolvers.base import (
    ImportResolver,
    collect_suffix_candidates,
    pick_closest,
)

__all__ = ["PHP_RESOLVER"]

# use Foo\Bar; use Foo\Bar as Baz; use Foo\{A, B}; use function Foo\bar; use const Foo\BAR;
_USE_PATTERN = re.compile(r"^\s*use\s+(?:(?:function|const)\s+)?([^;]+);", re.MULTILINE)
_GROUP_PATTERN = re.compile(r"^(.*?)\\\s*\{([^}]+)\}$", re.DOTALL)
_ALIAS_PATTERN = re.compile(r"\s+as\s+", re.IGNORECASE)
_WHITESPACE_PATTERN = re.compile(r"\s+")


def _strip_alias(clause: str) -> str:
    return _ALIAS_PATTERN.split(clause.strip(), maxsplit=1)[0].strip()


def _expand_use_body(body: str) -> list[str]:
    """Expand grouped and comma-separated use clauses into full paths."""
    grouped = _GROUP_PATTERN.match(body)
    if grouped:
        prefix = _WHITESPACE_PATTERN.sub("", grouped.group(1))
        members = [m.strip() for m in grouped.group(2).split(",") if m.strip()]
        expanded = []
        for member in members:
            member_path = _WHITESPACE_PATTERN.sub("", _strip_alias(member))
            if member_path:
                expanded.append(f"{prefix}\\{member_path}")
        return expanded

    paths = (_WHITESPACE_PATTERN.sub("", _strip_alias(part)) for part in body.split(","))
    return [p for p in paths if p]


def extract_php_imports(content: str) -> list[str]:
    imports = []
    for match in _USE_PATTERN.finditer(content):
        body = match.group(1).strip()
        if not body:
            continue
        for import_path in _expand_use_body(body):
            normalized = import_path.lstrip("\\").strip()
            if normalized:
                imports.append(normalized)
    return imports


def resolve_php_import(import_str: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
    """Resolve Foo\\Bar to .../Foo/Bar.php (or Bar.php as a fallback)."""
    module_path = import_str.lstrip("\\").replace("\\", "/")
    if not module_path:
        return None

    candidates = collect_suffix_candidates(module_path, all_files, (".php", "/index.php"))
    return pick_closest(candidates, current_file)


PHP_RESOLVER = ImportResolver(
    language="php",
    extensions=(".php",),
    extract_fn=extract_php_imports,
    resolve_fn=resolve_php_import,
)
