"""Code context retrieval engine.

Fuses vector and lexical retrieval channels, reranks, expands seeds through
the code graph (neighbors, enclosing definitions, imports) and packs the
result into budgeted, non-overlapping file segments. Offline tooling learns
from implicit feedback and tunes the fusion weights against labeled data.

Author: Hay Hoffman
"""
