"""Retrieval pipeline for the code context engine.

- Hybrid search (FAISS vectors + BM25) with weighted RRF fusion
- Path/language candidate filtering
- Cross-encoder rerank with fused-order fallback
- Graph expansion (neighbors, breadcrumb siblings, imports)
- Budgeted context packing and text rendering

Author: Hay Hoffman
"""

from codecontext.retrieval.channels import BM25LexicalChannel, FAISSVectorChannel
from codecontext.retrieval.chunk_store import JSONChunkStore
from codecontext.retrieval.context_packer import ContextPacker
from codecontext.retrieval.filters import CandidateFilter, PathFilter
from codecontext.retrieval.fusion import fuse, rrf_scores
from codecontext.retrieval.graph_expander import GraphExpander
from codecontext.retrieval.reranker import CrossEncoderReranker
from codecontext.retrieval.search_service import (
    SearchService,
    apply_pre_rerank_per_file_cap,
    build_query_channels,
)

__all__ = [
    "SearchService",
    "build_query_channels",
    "apply_pre_rerank_per_file_cap",
    "fuse",
    "rrf_scores",
    "GraphExpander",
    "ContextPacker",
    "CandidateFilter",
    "PathFilter",
    "JSONChunkStore",
    "BM25LexicalChannel",
    "FAISSVectorChannel",
    "CrossEncoderReranker",
]
