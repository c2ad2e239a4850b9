"""Custom exceptions for the retrieval pipeline and offline tooling."""


class RetrievalError(Exception):
    """Base class for request-path failures."""

    pass


class ChannelError(RetrievalError):
    """Raised when a retrieval channel fails or times out.

    The whole request fails: fusion has no valid input without both channels.
    """

    def __init__(self, message: str, stage: str = "unknown"):
        """Initialize channel error.

        Args:
            message: Human-readable error message
            stage: Failing stage (e.g., 'vector', 'lexical')
        """
        super().__init__(message)
        self.stage = stage


class RerankError(RetrievalError):
    """Raised by rerank adapters; the search service falls back to fused order."""

    pass


class ChunkLookupError(LookupError):
    """Raised when a chunk or file cannot be found in the chunk store."""

    pass


class AutoTuneConfigError(ValueError):
    """Raised when auto-tune options are malformed (grid, k values, target, dataset)."""

    def __init__(self, message: str, field: str = ""):
        """Initialize auto-tune configuration error.

        Args:
            message: Human-readable error message
            field: Offending option (e.g., 'grid.w_vec', 'k_values')
        """
        super().__init__(message)
        self.field = field


class DatasetError(ValueError):
    """Raised when a labeled dataset cannot be loaded; one bad row aborts the load."""

    def __init__(self, message: str, line: int | None = None, field: str = ""):
        """Initialize dataset error.

        Args:
            message: Human-readable error message
            line: 1-based row/line number of the offending entry
            field: Offending field name
        """
        super().__init__(message)
        self.line = line
        self.field = field
