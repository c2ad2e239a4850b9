"""Dart resolver for relative import/export/part directives.

Package imports ('package:...', 'dart:...') are external and never resolve.
"""

import re
from collections.abc import Set as AbstractSet

from codecontext.retrieval.resolvers.base import ImportResolver, resolve_relative

__all__ = ["DART_RESOLVER"]

_DIRECTIVE_PATTERN = re.compile(
    r"""^\s*(?:import|export|part(?:\s+of)?)\s+['"](\.{1,2}/[^'"]+)['"][^\n;]*;?""",
    re.MULTILINE,
)


def extract_dart_imports(content: str) -> list[str]:
    return [match.group(1) for match in _DIRECTIVE_PATTERN.finditer(content)]


def resolve_dart_import(import_str: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
    if not import_str.startswith("."):
        return None

    path = resolve_relative(import_str, current_file)
    if path is None:
        return None
    if path in all_files:
        return path
    if not path.endswith(".dart") and path + ".dart" in all_files:
        return path + ".dart"
    return None


DART_RESOLVER = ImportResolver(
    language="dart",
    extensions=(".dart",),
    extract_fn=extract_dart_imports,
    resolve_fn=resolve_dart_import,
)
