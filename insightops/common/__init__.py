"""
InsightOps Common Module

Shared infrastructure for the retriever and decay pipelines.
"""

from .config import InsightOpsConfig, load_config, resolve_provider
from .document_store import DocumentStore, InMemoryDocumentStore, JsonDocumentStore
from .embedding_service import EmbeddingService
from .similarity import cosine_similarity

__all__ = [
    "InsightOpsConfig",
    "load_config",
    "resolve_provider",
    "DocumentStore",
    "InMemoryDocumentStore",
    "JsonDocumentStore",
    "EmbeddingService",
    "cosine_similarity",
]
