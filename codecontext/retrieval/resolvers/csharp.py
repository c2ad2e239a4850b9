"""C# using-directive resolver (namespace -> directory convention)."""

import re
from collections.abc import Set as AbstractSet

from codecontext.retrieval.resolvers.base import (
    ImportResolver,
    collect_suffix_candidates,
    pick_closest,
)

__all__ = ["CSHARP_RESOLVER"]

# using X.Y; using Alias = X.Y; using static X.Y; global using ...; global::X.Y
_USING_PATTERN = re.compile(
    r"^\s*(?:global\s+)?using\s+(?:static\s+)?(?:@?\w+\s*=\s*)?((?:@?\w+::)?@?\w+(?:\.@?\w+)*)\s*;",
    re.MULTILINE,
)
_ALIAS_QUALIFIER_PATTERN = re.compile(r"^@?\w+::")


def extract_csharp_imports(content: str) -> list[str]:
    return [match.group(1) for match in _USING_PATTERN.finditer(content)]


def resolve_csharp_import(import_str: str, current_file: str, all_files: AbstractSet[str]) -> str | None:
    """Resolve Namespace.Type to Namespace/Type.cs, falling back to Type.cs."""
    normalized = _ALIAS_QUALIFIER_PATTERN.sub("", import_str).replace("@", "")
    if not normalized:
        return None

    candidates = collect_suffix_candidates(normalized.replace(".", "/"), all_files, (".cs",))
    return pick_closest(candidates, current_file)


CSHARP_RESOLVER = ImportResolver(
    language="csharp",
    extensions=(".cs",),
    extract_fn=extract_csharp_imports,
    resolve_fn=resolve_csharp_import,
)
