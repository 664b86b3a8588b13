"""Shared FastAPI dependencies for external capabilities.

Endpoints obtain the completion and embedding services through these
providers so tests can swap in deterministic fakes via
`app.dependency_overrides`.
"""

from functools import lru_cache

from app.services.extraction.completion_service import CompletionService, LLMCompletionService
from app.services.retrieval.embedding_service import (
    EmbeddingService,
    SentenceTransformerEmbeddingService,
)


@lru_cache
def get_completion_service() -> CompletionService:
    return LLMCompletionService()


@lru_cache
def get_embedding_service() -> EmbeddingService:
    return SentenceTransformerEmbeddingService()
