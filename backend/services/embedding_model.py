"""Deterministic hashing bag-of-words embedding model."""
import logging
from typing import List, Optional

import numpy as np

from services.tokenizer import Tokenizer
from config import EMBEDDING_DIM

logger = logging.getLogger(__name__)


class EmbeddingModel:
    """
    Maps text to a fixed-length unit vector without a trained model.

    Every token is hashed into one of ``dimension`` buckets and the bucket
    counts are L2-normalized. Vectors stored in the external table were
    produced with this exact arithmetic, so ``hash_token`` must not change.
    """

    def __init__(self, tokenizer: Optional[Tokenizer] = None, dimension: int = EMBEDDING_DIM):
        """
        Initialize the embedding model.

        Args:
            tokenizer: Tokenizer used to split text before hashing
            dimension: Vector length (must match the external vector column)
        """
        if dimension <= 0:
            raise ValueError("dimension must be positive")

        self.tokenizer = tokenizer or Tokenizer()
        self.dimension = dimension
        logger.debug(f"Initialized EmbeddingModel with dimension: {dimension}")

    @staticmethod
    def hash_token(token: str) -> int:
        """
        32-bit signed polynomial string hash.

        Recurrence over UTF-16 code units ``u``: ``h = int32(h * 31 + u)``,
        starting from ``h = 0``.
        """
        encoded = token.encode("utf-16-le")
        value = 0
        for i in range(0, len(encoded), 2):
            unit = encoded[i] | (encoded[i + 1] << 8)
            value = (value * 31 + unit) & 0xFFFFFFFF
        if value >= 0x80000000:
            value -= 0x100000000
        return value

    def embed_text(self, text: str) -> List[float]:
        """
        Generate the embedding for a single text.

        Args:
            text: Text to embed

        Returns:
            Unit-length vector, or the zero vector when text has no tokens
        """
        vector = np.zeros(self.dimension, dtype=np.float64)
        for token in self.tokenizer.tokenize(text):
            vector[abs(self.hash_token(token)) % self.dimension] += 1.0

        magnitude = np.linalg.norm(vector)
        if magnitude > 0:
            vector = vector / magnitude
        return vector.tolist()

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts.

        Args:
            texts: Texts to embed

        Returns:
            One vector per input text, in order
        """
        return [self.embed_text(text) for text in texts]
