"""Query embedding service."""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional

from sentence_transformers import SentenceTransformer

from app.core.config import EmbeddingSettings, settings
from app.core.exceptions import UpstreamServiceError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Module-level singleton for the embedding model (expensive to load)
_embedding_model: SentenceTransformer | None = None


def _get_embedding_model(model_name: str) -> SentenceTransformer:
    """Get or lazily load the shared SentenceTransformer model."""
    global _embedding_model
    if _embedding_model is None:
        LOGGER.info(f"Loading embedding model: {model_name}")
        _embedding_model = SentenceTransformer(model_name)
    return _embedding_model


class EmbeddingService(ABC):
    """Text embedding capability. Failures are recoverable for callers."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embed text.

        Raises:
            UpstreamServiceError: If the embedding cannot be produced
        """


class SentenceTransformerEmbeddingService(EmbeddingService):
    """Local sentence-transformers embedding with a hard timeout."""

    def __init__(self, embedding_settings: Optional[EmbeddingSettings] = None):
        self.config = embedding_settings or settings.embedding

    def _encode(self, text: str) -> List[float]:
        model = _get_embedding_model(self.config.model_name)
        return model.encode(text).tolist()

    async def embed(self, text: str) -> List[float]:
        try:
            # encode is CPU-bound; run in a thread
            vector = await asyncio.wait_for(
                asyncio.to_thread(self._encode, text),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamServiceError(
                f"Embedding timed out after {self.config.timeout_seconds}s", e
            ) from e
        except Exception as e:
            raise UpstreamServiceError(f"Embedding failed: {e}", e) from e

        if len(vector) != self.config.dimension:
            raise UpstreamServiceError(
                f"Embedding has dimension {len(vector)}, expected {self.config.dimension}"
            )
        return vector
