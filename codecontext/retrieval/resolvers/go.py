"""Go import resolver (package import path -> package directory).

A Go import names a directory; it resolves to the first non-test source file
of the best matching package directory.
"""

import re
from collections.abc import Set as AbstractSet

from codecontext.retrieval.resolvers.base import ImportResolver, ends_with_path, pick_closest

__all__ = ["GO_RESOLVER"]

_SINGLE_PATTERN = re.compile(r"""^\s*import\s+(?:[\w.]+\s+)?"([^"]+)\"""", re.MULTILINE)
_BLOCK_PATTERN = re.compile(r"^\s*import\s*\(([^)]*)\)", re.MULTILINE)
_BLOCK_ENTRY_PATTERN = re.compile(r"""(?:[\w.]+\s+)?"([^"]+)\"""")


def extract_go_imports(content: str) -> list[str]:
    found = [(m.start(), m.group(1)) for m in _SINGLE_PATTERN.finditer(content)]
    for block in _BLOCK_PATTERN.finditer(content):
        for entry in _BLOCK_ENTRY_PATTERN.finditer(block.group(1)):
            found.append((block.start(1) + entry.start(), entry.group(1)))
    return [path for _, path in sorted(found, key=lambda x: x[0])]


def _package_files(all_files: AbstractSet[str]) -> dict[str, list[str]]:
    packages: dict[str, list[str]] = {}
    for f in all_files:
        if f.endswith(".go") and not f.endswith("_test.go"):
            packages.setdefault(f.rpartition("/")[0], []).append(f)
    return packages


def resolve_go_import(import_str: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
    """Resolve 'module/pkg/sub' to a file in a directory ending with 'pkg/sub'."""
    package_path = import_str.strip("/")
    if not package_path:
        return None

    packages = _package_files(all_files)
    dirs = [d for d in packages if d and ends_with_path(d, package_path)]
    if not dirs:
        # Module-qualified paths rarely match the repo layout in full
        leaf = package_path.rsplit("/", 1)[-1]
        dirs = [d for d in packages if d and ends_with_path(d, leaf)]

    best_dir = pick_closest(dirs, current_file)
    if best_dir is None:
        return None
    return sorted(packages[best_dir])[0]


GO_RESOLVER = ImportResolver(
    language="go",
    extensions=(".go",),
    extract_fn=extract_go_imports,
    resolve_fn=resolve_go_import,
)
