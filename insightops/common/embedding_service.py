"""
Embedding Service

On-device embedding generation with fastembed, or the OpenAI embeddings
endpoint when mode="openai". The underlying model is constructed lazily on
first use so importing this module never downloads model weights.
"""

import logging
from typing import List, Optional, Protocol

import numpy as np

from .config import DEFAULT_EMBEDDING_MODELS
from .errors import InputError

logger = logging.getLogger("insightops.common.embedding_service")


class EmbeddingProvider(Protocol):
    """What the retriever and the decay engine need from an embedder."""

    def embed_single(self, text: str) -> List[float]:
        ...


class EmbeddingService:
    """
    Embedding service for InsightOps.

    Uses fastembed by default for on-device embedding generation.
    This avoids external API calls and keeps document text local.
    """

    def __init__(
        self,
        mode: str = "femb",
        model: Optional[str] = None,
        openai_api_key: Optional[str] = None,
    ):
        """
        Args:
            mode: "femb" (fastembed, on-device) or "openai"
            model: Model name; defaults to the mode's model when empty
            openai_api_key: Required for mode="openai"
        """
        self._mode = (mode or "femb").lower()
        self._model = model or DEFAULT_EMBEDDING_MODELS.get(self._mode, DEFAULT_EMBEDDING_MODELS["femb"])
        self._openai_api_key = openai_api_key
        self._backend = None
        self._dimension: Optional[int] = None

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def model(self) -> str:
        return self._model

    def _ensure_backend(self):
        if self._backend is not None:
            return self._backend

        if self._mode == "femb":
            from fastembed import TextEmbedding

            self._backend = TextEmbedding(model_name=self._model)
        elif self._mode == "openai":
            from openai import OpenAI

            self._backend = OpenAI(api_key=self._openai_api_key)
        else:
            raise ValueError(f"Unsupported embedding mode: {self._mode}")

        logger.info("Embedding backend initialized: mode=%s, model=%s", self._mode, self._model)
        return self._backend

    def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed

        Returns:
            List of embedding vectors, one per input text
        """
        if not texts:
            return []

        backend = self._ensure_backend()

        if self._mode == "openai":
            response = backend.embeddings.create(model=self._model, input=list(texts))
            embeddings = [item.embedding for item in response.data]
        else:
            embeddings = [np.asarray(vec, dtype=float).tolist() for vec in backend.embed(list(texts))]

        if embeddings and self._dimension is None:
            self._dimension = len(embeddings[0])
        return embeddings

    def embed_single(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Raises:
            InputError: If text is empty or whitespace
        """
        if not text or not text.strip():
            raise InputError("Cannot embed empty text")

        return self.embed([text])[0]

    @property
    def dimension(self) -> Optional[int]:
        """Vector length, known after the first successful embed call."""
        return self._dimension

