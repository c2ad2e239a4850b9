"""Python import resolver (ast-based extraction, dotted-module resolution)."""

import ast
import logging
import re
from collections.abc import Set as AbstractSet

from codecontext.retrieval.resolvers.base import (
    ImportResolver,
    collect_suffix_candidates,
    pick_closest,
    resolve_relative,
)

logger = logging.getLogger(__name__)

__all__ = ["PYTHON_RESOLVER"]

_MODULE_SUFFIXES = (".py", "/__init__.py")

# Used when the file does not parse (e.g. Python 2 sources)
_IMPORT_PATTERN = re.compile(r"^\s*import\s+([\w.]+)", re.MULTILINE)
_FROM_PATTERN = re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\s", re.MULTILINE)


def extract_python_imports(content: str) -> list[str]:
    """Extract imported module names from Python source.

    Relative imports keep their leading dots ("from .x import y" -> ".x").
    "from . import a, b" yields one entry per name (".a", ".b").

    Args:
        content: Python source text

    Returns:
        Module strings in source order
    """
    try:
        tree = ast.parse(content)
    except (SyntaxError, ValueError) as e:
        logger.debug(f"Falling back to regex import extraction: {e}")
        found = [(m.start(), m.group(1)) for m in _IMPORT_PATTERN.finditer(content)]
        found += [(m.start(), m.group(1)) for m in _FROM_PATTERN.finditer(content)]
        return [name for _, name in sorted(found, key=lambda x: x[0])]

    imports: list[tuple[int, int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                imports.append((node.lineno, node.col_offset, alias.name))
        elif isinstance(node, ast.ImportFrom):
            prefix = "." * node.level
            if node.module:
                imports.append((node.lineno, node.col_offset, prefix + node.module))
            else:
                for alias in node.names:
                    imports.append((node.lineno, node.col_offset, prefix + alias.name))

    imports.sort(key=lambda x: (x[0], x[1]))
    return [name for _, _, name in imports]


def resolve_python_import(import_str: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
    """Resolve a dotted (optionally relative) module to a repository file."""
    level = len(import_str) - len(import_str.lstrip("."))
    module = import_str[level:]

    if level:
        # One dot is the current package; each extra dot climbs one directory
        relative = "/".join([".."] * (level - 1) + ([module.replace(".", "/")] if module else []))
        base = resolve_relative(relative or ".", current_file)
        if base is None:
            return None
        for suffix in _MODULE_SUFFIXES:
            if base + suffix in all_files:
                return base + suffix
        return None

    if not module:
        return None

    candidates = collect_suffix_candidates(module.replace(".", "/"), all_files, _MODULE_SUFFIXES)
    return pick_closest(candidates, current_file)


PYTHON_RESOLVER = ImportResolver(
    language="python",
    extensions=(".py", ".pyi"),
    extract_fn=extract_python_imports,
    resolve_fn=resolve_python_import,
)
