"""JavaScript / TypeScript import resolver.

Only relative specifiers ('./x', '../x') resolve; bare specifiers name npm
packages and are treated as external.
"""

import re
from collections.abc import Set as AbstractSet

from codecontext.retrieval.resolvers.base import ImportResolver, ordered_matches, resolve_relative

__all__ = ["JAVASCRIPT_RESOLVER"]

_SOURCE_EXTENSIONS = (".ts", ".tsx", ".d.ts", ".js", ".jsx", ".mjs", ".cjs")

_FROM_PATTERN = re.compile(r"""^\s*(?:import|export)\b[^'"`;]*?\bfrom\s*['"]([^'"]+)['"]""", re.MULTILINE)
_SIDE_EFFECT_PATTERN = re.compile(r"""^\s*import\s*['"]([^'"]+)['"]""", re.MULTILINE)
_CALL_PATTERN = re.compile(r"""\b(?:require|import)\s*\(\s*['"]([^'"]+)['"]\s*\)""")

_PATTERNS = [
    (_FROM_PATTERN, lambda m: [m.group(1)]),
    (_SIDE_EFFECT_PATTERN, lambda m: [m.group(1)]),
    (_CALL_PATTERN, lambda m: [m.group(1)]),
]


def extract_js_imports(content: str) -> list[str]:
    """Extract module specifiers from import/export/require statements."""
    return ordered_matches(content, _PATTERNS)


def resolve_js_import(import_str: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
    """Resolve a relative specifier, trying source extensions and index files."""
    if not import_str.startswith("."):
        return None

    base = resolve_relative(import_str, current_file)
    if base is None:
        return None

    if base in all_files:
        return base

    # ESM TypeScript imports reference the emitted '.js' file
    stem = re.sub(r"\.(?:js|jsx|mjs|cjs)$", "", base)
    for candidate_base in dict.fromkeys([base, stem]):
        for ext in _SOURCE_EXTENSIONS:
            if candidate_base + ext in all_files:
                return candidate_base + ext
        for ext in _SOURCE_EXTENSIONS:
            index_path = f"{candidate_base}/index{ext}"
            if index_path in all_files:
                return index_path
    return None


JAVASCRIPT_RESOLVER = ImportResolver(
    language="javascript",
    extensions=(".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs"),
    extract_fn=extract_js_imports,
    resolve_fn=resolve_js_import,
)
