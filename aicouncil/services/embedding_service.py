"""Embedding service for generating vector embeddings"""

import json
import logging
from functools import lru_cache
from typing import List, Optional, Sequence

import numpy as np
import openai
from openai import AsyncOpenAI

from aicouncil.config import settings
from aicouncil.services.errors import DimensionMismatchError, LLMConfigurationError
from aicouncil.services.llm_service import map_openai_error

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Service for generating text embeddings using OpenAI.

    One call per text: no batching and no cache, so repeated text is
    embedded again every time.
    """

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        self._api_key = api_key if api_key is not None else settings.openai_api_key
        self._client = client
        self.model = settings.embedding_model
        self.dimension = settings.embedding_dimension

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key or self._api_key == settings.openai_placeholder_key:
                raise LLMConfigurationError("OPENAI_API_KEY is not configured")
            self._client = AsyncOpenAI(api_key=self._api_key)
            logger.info(f"OpenAI client initialized for model: {self.model}")
        return self._client

    async def embed(self, text: str) -> List[float]:
        """Generate embedding for a single text"""
        client = self.client
        try:
            response = await client.embeddings.create(
                model=self.model,
                input=text,
                encoding_format="float",
            )
        except openai.OpenAIError as e:
            logger.error(f"[MEMORY] Error generating embedding: {e}")
            raise map_openai_error(e) from e
        return list(response.data[0].embedding)

    @staticmethod
    def embedding_to_json(embedding: Sequence[float]) -> str:
        """Serialize an embedding for the JSON text column"""
        return json.dumps(list(embedding))

    @staticmethod
    def embedding_from_json(json_str: str) -> List[float]:
        """Parse embedding from JSON string"""
        return json.loads(json_str)


def cosine_similarity(embedding1: Sequence[float], embedding2: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 when either vector has zero magnitude."""
    if len(embedding1) != len(embedding2):
        raise DimensionMismatchError(
            f"Vectors must have same dimensions ({len(embedding1)} != {len(embedding2)})"
        )
    a = np.asarray(embedding1, dtype=float)
    b = np.asarray(embedding2, dtype=float)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


@lru_cache()
def get_embedding_service() -> EmbeddingService:
    """Get the singleton embedding service"""
    return EmbeddingService()
