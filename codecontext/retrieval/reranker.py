"""Cross-encoder reranker built on sentence-transformers.

Author: Hay Hoffman
"""

import logging
import threading
from collections.abc import Sequence

import numpy as np

from codecontext.exceptions import RerankError
from settings import RERANK_BATCH_SIZE, RERANK_MODEL

logger = logging.getLogger(__name__)

__all__ = ["CrossEncoderReranker"]


class CrossEncoderReranker:
    """Score (query, candidate) pairs with a cross-encoder model.

    The model is loaded lazily on first use and shared across threads.

    Attributes:
        model_name: Cross-encoder model name
        batch_size: Prediction batch size
    """

    def __init__(self, model_name: str = RERANK_MODEL, batch_size: int = RERANK_BATCH_SIZE):
        self.model_name = model_name
        self.batch_size = batch_size
        self._model = None
        self._lock = threading.Lock()

    def _get_model(self):
        with self._lock:
            if self._model is None:
                from sentence_transformers import CrossEncoder

                logger.info(f"Loading rerank model: {self.model_name}")
                self._model = CrossEncoder(self.model_name)
                logger.info("Rerank model loaded successfully")
        return self._model

    def rerank(self, query: str, texts: Sequence[str]) -> list[float]:
        """Relevance scores aligned with ``texts``, squashed into (0, 1).

        Positive scores keep expansion decay (seed score x factor < 1) ordering
        expanded chunks below their seed.

        Raises:
            RerankError: If the model fails or returns a misaligned result
        """
        if not texts:
            return []

        model = self._get_model()
        try:
            scores = model.predict([(query, text) for text in texts], batch_size=self.batch_size)
        except Exception as e:
            raise RerankError(f"Cross-encoder prediction failed: {e}") from e
        scores = [float(s) for s in 1.0 / (1.0 + np.exp(-np.asarray(scores, dtype=np.float64)))]

        if len(scores) != len(texts):
            raise RerankError(f"Reranker returned {len(scores)} scores for {len(texts)} texts")
        return scores
