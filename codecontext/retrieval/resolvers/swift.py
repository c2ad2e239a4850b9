"""Swift import resolver (exact member path, then module-level match)."""

import re
from collections.abc import Set as AbstractSet

from codecontext.retrieval.resolvers.base import ImportResolver, ends_with_path, pick_closest

__all__ = ["SWIFT_RESOLVER"]

# import Foo; import struct Foo.Bar; @testable import Foo
_IMPORT_PATTERN = re.compile(
    r"^\s*(?:@testable\s+)?import\s+(?:(?:typealias|struct|class|enum|protocol|let|var|func)\s+)?([\w.]+)\s*;?\s*$",
    re.MULTILINE,
)


def extract_swift_imports(content: str) -> list[str]:
    return [match.group(1) for match in _IMPORT_PATTERN.finditer(content)]


def resolve_swift_import(import_str: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
    """Resolve Foo.Bar to Foo/Bar.swift, else any file of module Foo."""
    swift_files = sorted(f for f in all_files if f.endswith(".swift"))
    if not swift_files:
        return None

    exact_suffix = import_str.replace(".", "/") + ".swift"
    exact = [f for f in swift_files if ends_with_path(f, exact_suffix)]
    if exact:
        return pick_closest(exact, current_file)

    module_name = import_str.split(".", 1)[0]
    module_dir = f"/{module_name}/"
    candidates = [
        f for f in swift_files
        if ends_with_path(f, module_name + ".swift") or module_dir in f"/{f}"
    ]
    return pick_closest(candidates, current_file)


SWIFT_RESOLVER = ImportResolver(
    language="swift",
    extensions=(".swift",),
    extract_fn=extract_swift_imports,
    resolve_fn=resolve_swift_import,
)
