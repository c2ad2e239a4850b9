"""Configuration settings for the Code Context Retrieval Engine.

This module provides a unified configuration system with two categories:

1. SYSTEM CONSTANTS: Fixed values that define system behavior (not user-configurable)
   - Data file locations, extension/language tables
   - Expansion score decays, feedback inference thresholds

2. USER SETTINGS: Configurable via environment variables (.env file)
   - Model names, batch sizes
   - Tunable parameters (fusion weights, channel sizes, budgets, timeouts)

Author: Hay Hoffman
Version: 3.0
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ============================================================================
# SYSTEM CONSTANTS - Not user-configurable
# ============================================================================

# -----------------------------------------------------------------------------
# Project Paths
# -----------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).parent
DATA_DIR = Path(os.getenv("CODECONTEXT_DATA_DIR", str(PROJECT_ROOT / "data")))

# -----------------------------------------------------------------------------
# Language Tables
# -----------------------------------------------------------------------------

# File extension -> language tag (matches the language field of chunk records)
EXTENSION_LANGUAGES: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".java": "java",
    ".kt": "kotlin",
    ".cs": "csharp",
    ".php": "php",
    ".rb": "ruby",
    ".swift": "swift",
    ".dart": "dart",
    ".go": "go",
    ".rs": "rust",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".scala": "scala",
    ".sql": "sql",
    ".sh": "bash",
    ".bash": "bash",
    ".zsh": "bash",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".md": "markdown",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".xml": "xml",
}

# Languages that are documentation/configuration rather than source code
NON_CODE_LANGUAGES: frozenset[str] = frozenset({
    "markdown", "json", "yaml", "toml", "xml"
})

# -----------------------------------------------------------------------------
# Expansion Constants
# -----------------------------------------------------------------------------

# Score multipliers applied to the originating seed score; keep < 1 so that
# expanded chunks always rank below the seed that produced them
NEIGHBOR_SCORE_DECAY: float = 0.9
BREADCRUMB_SCORE_DECAY: float = 0.8
IMPORT_SCORE_DECAY: float = 0.6

# -----------------------------------------------------------------------------
# Feedback Inference Constants
# -----------------------------------------------------------------------------

PATH_PIN_WEIGHT: float = 1.0
NO_HIT_REWRITE_WEIGHT: float = -0.6
NO_HIT_REWRITE_MIN_JACCARD: float = 0.4

# -----------------------------------------------------------------------------
# Auto-Tune Defaults
# -----------------------------------------------------------------------------

AUTO_TUNE_DEFAULT_GRID: dict[str, list[float]] = {
    "w_vec": [0.5, 0.6, 0.7],
    "rrf_k0": [10, 20, 40],
    "fused_top_m": [40, 60],
}
AUTO_TUNE_DEFAULT_K_VALUES: list[int] = [1, 3, 5]
BENCHMARK_DEFAULT_K_VALUES: list[int] = [1, 3, 5, 10]


# ============================================================================
# USER SETTINGS - Configurable via environment variables
# ============================================================================

# -----------------------------------------------------------------------------
# Data Files
# -----------------------------------------------------------------------------

CHUNKS_FILE: Path = DATA_DIR / os.getenv("CHUNKS_FILE", "chunks.json")
INDEX_DIR: Path = DATA_DIR / os.getenv("INDEX_DIR", "index")
FEEDBACK_DB_FILE: Path = DATA_DIR / os.getenv("FEEDBACK_DB_FILE", "feedback.db")
FUSION_CONFIG_FILE: Path = DATA_DIR / os.getenv("FUSION_CONFIG_FILE", "fusion_config.json")

# -----------------------------------------------------------------------------
# Model Configuration
# -----------------------------------------------------------------------------

EMBEDDING_MODEL: str = os.getenv(
    "EMBEDDING_MODEL", "sentence-transformers/all-MiniLM-L6-v2"
)
EMBEDDING_BATCH_SIZE: int = int(os.getenv("EMBEDDING_BATCH_SIZE", "32"))

RERANK_MODEL: str = os.getenv("RERANK_MODEL", "cross-encoder/ms-marco-MiniLM-L-6-v2")
RERANK_BATCH_SIZE: int = int(os.getenv("RERANK_BATCH_SIZE", "16"))
ENABLE_RERANK: bool = os.getenv("ENABLE_RERANK", "true").lower() == "true"

# -----------------------------------------------------------------------------
# Fusion Configuration (default until overridden by auto-tune output)
# -----------------------------------------------------------------------------

FUSION_W_VEC: float = float(os.getenv("FUSION_W_VEC", "0.6"))
FUSION_RRF_K0: float = float(os.getenv("FUSION_RRF_K0", "20"))
FUSION_TOP_M: int = int(os.getenv("FUSION_TOP_M", "60"))

# -----------------------------------------------------------------------------
# Retrieval Configuration
# -----------------------------------------------------------------------------

VECTOR_TOP_K: int = int(os.getenv("VECTOR_TOP_K", "80"))
LEXICAL_TOP_K: int = int(os.getenv("LEXICAL_TOP_K", "80"))
PRE_RERANK_PER_FILE_CAP: int = int(os.getenv("PRE_RERANK_PER_FILE_CAP", "3"))
RERANK_TOP_N: int = int(os.getenv("RERANK_TOP_N", "20"))
ENABLE_SMART_CUTOFF: bool = os.getenv("ENABLE_SMART_CUTOFF", "true").lower() == "true"

# -----------------------------------------------------------------------------
# Context Expansion Limits
# -----------------------------------------------------------------------------

NEIGHBOR_HOPS: int = int(os.getenv("NEIGHBOR_HOPS", "2"))
BREADCRUMB_EXPAND_LIMIT: int = int(os.getenv("BREADCRUMB_EXPAND_LIMIT", "3"))
IMPORT_FILES_PER_SEED: int = int(os.getenv("IMPORT_FILES_PER_SEED", "0"))
CHUNKS_PER_IMPORT_FILE: int = int(os.getenv("CHUNKS_PER_IMPORT_FILE", "0"))

# -----------------------------------------------------------------------------
# Context Packing Budgets
# -----------------------------------------------------------------------------

MAX_SEGMENTS_PER_FILE: int = int(os.getenv("MAX_SEGMENTS_PER_FILE", "3"))
MAX_TOTAL_CHARS: int = int(os.getenv("MAX_TOTAL_CHARS", "48000"))

# -----------------------------------------------------------------------------
# Timeouts (seconds)
# -----------------------------------------------------------------------------

CHANNEL_TIMEOUT: float = float(os.getenv("CHANNEL_TIMEOUT", "30"))
RERANK_TIMEOUT: float = float(os.getenv("RERANK_TIMEOUT", "20"))

# -----------------------------------------------------------------------------
# BM25 Tokenization
# -----------------------------------------------------------------------------

BM25_MIN_TOKEN_LENGTH: int = int(os.getenv("BM25_MIN_TOKEN_LENGTH", "2"))
BM25_SPLIT_CAMELCASE: bool = os.getenv("BM25_SPLIT_CAMELCASE", "true").lower() == "true"
BM25_SPLIT_SNAKE_CASE: bool = (
    os.getenv("BM25_SPLIT_SNAKE_CASE", "true").lower() == "true"
)

# -----------------------------------------------------------------------------
# Output Settings
# -----------------------------------------------------------------------------

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
DEFAULT_RAW_TOP_N: int = int(os.getenv("DEFAULT_RAW_TOP_N", "5"))
MAX_RAW_TOP_N: int = 20


# ============================================================================
# VALIDATION
# ============================================================================

if not 0 < FUSION_W_VEC < 1:
    raise ValueError(f"Invalid FUSION_W_VEC: {FUSION_W_VEC}. Must be in (0, 1)")

if FUSION_RRF_K0 <= 0 or FUSION_TOP_M <= 0:
    raise ValueError(
        f"Invalid fusion settings: FUSION_RRF_K0={FUSION_RRF_K0}, "
        f"FUSION_TOP_M={FUSION_TOP_M}. Both must be positive"
    )

if MAX_TOTAL_CHARS <= 0:
    raise ValueError(f"Invalid MAX_TOTAL_CHARS: {MAX_TOTAL_CHARS}. Must be positive")


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    # === SYSTEM CONSTANTS ===
    # Paths
    "PROJECT_ROOT",
    "DATA_DIR",
    # Languages
    "EXTENSION_LANGUAGES",
    "NON_CODE_LANGUAGES",
    # Expansion
    "NEIGHBOR_SCORE_DECAY",
    "BREADCRUMB_SCORE_DECAY",
    "IMPORT_SCORE_DECAY",
    # Feedback
    "PATH_PIN_WEIGHT",
    "NO_HIT_REWRITE_WEIGHT",
    "NO_HIT_REWRITE_MIN_JACCARD",
    # Auto-tune
    "AUTO_TUNE_DEFAULT_GRID",
    "AUTO_TUNE_DEFAULT_K_VALUES",
    "BENCHMARK_DEFAULT_K_VALUES",
    # === USER SETTINGS ===
    # Data files
    "CHUNKS_FILE",
    "INDEX_DIR",
    "FEEDBACK_DB_FILE",
    "FUSION_CONFIG_FILE",
    # Models
    "EMBEDDING_MODEL",
    "EMBEDDING_BATCH_SIZE",
    "RERANK_MODEL",
    "RERANK_BATCH_SIZE",
    "ENABLE_RERANK",
    # Fusion
    "FUSION_W_VEC",
    "FUSION_RRF_K0",
    "FUSION_TOP_M",
    # Retrieval
    "VECTOR_TOP_K",
    "LEXICAL_TOP_K",
    "PRE_RERANK_PER_FILE_CAP",
    "RERANK_TOP_N",
    "ENABLE_SMART_CUTOFF",
    # Expansion
    "NEIGHBOR_HOPS",
    "BREADCRUMB_EXPAND_LIMIT",
    "IMPORT_FILES_PER_SEED",
    "CHUNKS_PER_IMPORT_FILE",
    # Packing
    "MAX_SEGMENTS_PER_FILE",
    "MAX_TOTAL_CHARS",
    # Timeouts
    "CHANNEL_TIMEOUT",
    "RERANK_TIMEOUT",
    # BM25
    "BM25_MIN_TOKEN_LENGTH",
    "BM25_SPLIT_CAMELCASE",
    "BM25_SPLIT_SNAKE_CASE",
    # Output
    "LOG_LEVEL",
    "DEFAULT_RAW_TOP_N",
    "MAX_RAW_TOP_N",
]
