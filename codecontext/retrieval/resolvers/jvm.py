"""Java and Kotlin import resolvers (package path -> source directory)."""

import re
from collections.abc import Set as AbstractSet

from codecontext.retrieval.resolvers.base import (
    ImportResolver,
    collect_suffix_candidates,
    ends_with_path,
    pick_closest,
)

__all__ = ["JAVA_RESOLVER", "KOTLIN_RESOLVER"]

_JAVA_PATTERN = re.compile(r"^\s*import\s+(static\s+)?([\w.]+(?:\.\*)?)\s*;", re.MULTILINE)
_KOTLIN_PATTERN = re.compile(
    r"^\s*import\s+([\w.]+(?:\.\*|\.[A-Z]\w*))(?:\s+as\s+\w+)?\s*;?\s*$",
    re.MULTILINE,
)


def extract_java_imports(content: str) -> list[str]:
    """Extract imports; static imports are prefixed with 'static:'."""
    imports = []
    for match in _JAVA_PATTERN.finditer(content):
        prefix = "static:" if match.group(1) else ""
        imports.append(prefix + match.group(2))
    return imports


def extract_kotlin_imports(content: str) -> list[str]:
    """Extract type and wildcard imports (aliases stripped)."""
    return [match.group(1) for match in _KOTLIN_PATTERN.finditer(content)]


def _resolve_package_member(
    import_str: str,
    current_file: str,
    all_files: AbstractSet[str],
    extension: str,
) -> str | None:
    if import_str.endswith(".*"):
        package_dir = import_str[:-2].replace(".", "/")
        candidates = [
            f for f in all_files
            if f.endswith(extension) and ends_with_path(f.rpartition("/")[0], package_dir)
        ]
        return pick_closest(candidates, current_file)

    candidates = collect_suffix_candidates(import_str.replace(".", "/"), all_files, (extension,))
    return pick_closest(candidates, current_file)


def resolve_java_import(import_str: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
    """Resolve 'a.b.C', 'a.b.*' or 'static:a.b.C.member' to a .java file."""
    if import_str.startswith("static:"):
        member_path = import_str[len("static:"):]
        if member_path.endswith(".*"):
            import_str = member_path[:-2]
        else:
            import_str = member_path.rsplit(".", 1)[0]
    return _resolve_package_member(import_str, current_file, all_files, ".java")


def resolve_kotlin_import(import_str: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
    """Resolve 'a.b.C' or 'a.b.*' to a .kt file."""
    return _resolve_package_member(import_str, current_file, all_files, ".kt")


JAVA_RESOLVER = ImportResolver(
    language="java",
    extensions=(".java",),
    extract_fn=extract_java_imports,
    resolve_fn=resolve_java_import,
)

KOTLIN_RESOLVER = ImportResolver(
    language="kotlin",
    extensions=(".kt", ".kts"),
    extract_fn=extract_kotlin_imports,
    resolve_fn=resolve_kotlin_import,
)
