"""Per-language import resolvers used by graph expansion.

The set of languages is closed: ``RESOLVERS`` lists one ImportResolver value
per supported language, and callers dispatch through ``resolvers_for``.

Author: Hay Hoffman
"""

from codecontext.retrieval.resolvers.base import ImportResolver, common_prefix_length
from codecontext.retrieval.resolvers.csharp import CSHARP_RESOLVER
from codecontext.retrieval.resolvers.dart import DART_RESOLVER
from codecontext.retrieval.resolvers.go import GO_RESOLVER
from codecontext.retrieval.resolvers.javascript import JAVASCRIPT_RESOLVER
from codecontext.retrieval.resolvers.jvm import JAVA_RESOLVER, KOTLIN_RESOLVER
from codecontext.retrieval.resolvers.php import PHP_RESOLVER
from codecontext.retrieval.resolvers.python import PYTHON_RESOLVER
from codecontext.retrieval.resolvers.ruby import RUBY_RESOLVER
from codecontext.retrieval.resolvers.swift import SWIFT_RESOLVER

__all__ = [
    "ImportResolver",
    "RESOLVERS",
    "common_prefix_length",
    "resolvers_for",
]

RESOLVERS: tuple[ImportResolver, ...] = (
    PYTHON_RESOLVER,
    JAVASCRIPT_RESOLVER,
    JAVA_RESOLVER,
    KOTLIN_RESOLVER,
    CSHARP_RESOLVER,
    PHP_RESOLVER,
    RUBY_RESOLVER,
    SWIFT_RESOLVER,
    DART_RESOLVER,
    GO_RESOLVER,
)


def resolvers_for(file_path: str, resolvers: tuple[ImportResolver, ...] = RESOLVERS) -> list[ImportResolver]:
    """Resolvers whose extensions match file_path."""
    return [resolver for resolver in resolvers if resolver.supports(file_path)]
