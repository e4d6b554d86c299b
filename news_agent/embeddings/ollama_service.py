"""
Ollama Embedding Service

Generates fixed-dimension text embeddings with Ollama through LangChain.
Provides:
- Connection and model verification
- Prefix truncation of oversized input
- Dimension verification (a mismatch is a configuration error)
- Error wrapping so callers never receive an empty vector
"""

import asyncio
import logging
from typing import List, Optional

import aiohttp
from langchain_ollama import OllamaEmbeddings

from ..utils.text import truncate_text

logger = logging.getLogger(__name__)

DIMENSION_PROBE_TEXT = "dimension probe"


class EmbeddingError(Exception):
    """Raised when an embedding cannot be produced."""
    pass


class EmbeddingDimensionError(EmbeddingError):
    """Raised when embedding dimensions don't match expected value."""
    pass


class OllamaConnectionError(Exception):
    """Raised when unable to connect to Ollama service."""
    pass


class OllamaModelError(Exception):
    """Raised when specified model is not available."""
    pass


class OllamaEmbeddingService:
    """
    Service for generating embeddings using Ollama's local models.

    Every vector returned has exactly ``dimension`` values; anything else
    raises instead of being defaulted, because an empty or zero vector would
    corrupt similarity search.
    """

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: str = "http://localhost:11434",
        dimension: int = 768,
        max_text_length: int = 12000,
        timeout: int = 60,
        embeddings: Optional[OllamaEmbeddings] = None
    ):
        """
        Initialize the Ollama embedding service.

        Args:
            model: Ollama embedding model name (default: nomic-embed-text)
            base_url: Ollama base URL
            dimension: Expected embedding dimension
            max_text_length: Maximum characters submitted per request
            timeout: Timeout in seconds for service checks
            embeddings: Pre-built LangChain embeddings client (for tests)
        """
        self.model = model
        self.base_url = base_url.rstrip('/')
        self.dimension = dimension
        self.max_text_length = max_text_length
        self.timeout = timeout

        self.embeddings = embeddings or OllamaEmbeddings(
            model=self.model,
            base_url=self.base_url
        )

        logger.info(f"Initialized OllamaEmbeddingService with model: {self.model}")
        logger.info(f"Expected dimension: {self.dimension}, max text length: {self.max_text_length}")

    async def _get_tags(self) -> dict:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(f"{self.base_url}/api/tags") as response:
                    response.raise_for_status()
                    return await response.json()
        except asyncio.TimeoutError:
            raise OllamaConnectionError(
                f"Connection to Ollama timed out after {self.timeout}s"
            )
        except aiohttp.ClientConnectionError:
            raise OllamaConnectionError(
                f"Unable to connect to Ollama at {self.base_url}. "
                "Please ensure Ollama is running (try: ollama serve)"
            )
        except aiohttp.ClientError as e:
            raise OllamaConnectionError(f"Error connecting to Ollama: {e}")

    async def verify_connection(self) -> bool:
        """
        Verify connection to Ollama service.

        Returns:
            True if connection successful

        Raises:
            OllamaConnectionError: If unable to connect
        """
        await self._get_tags()
        logger.info("✓ Successfully connected to Ollama service")
        return True

    async def verify_model_available(self) -> bool:
        """
        Verify that the embedding model is available.

        Raises:
            OllamaModelError: If model is not available
        """
        tags = await self._get_tags()
        available_models = [m.get('name') for m in tags.get('models', [])]

        # Check for exact match or match with :latest suffix
        if self.model not in available_models and f"{self.model}:latest" not in available_models:
            raise OllamaModelError(
                f"Model '{self.model}' not found. Available models: {available_models}. "
                f"Try: ollama pull {self.model}"
            )

        logger.info(f"✓ Model '{self.model}' is available")
        return True

    def _verify_embedding_dimensions(self, embedding: List[float]) -> None:
        """
        Verify embedding dimensions match expected value.

        Raises:
            EmbeddingDimensionError: If dimensions don't match
        """
        actual_dims = len(embedding)
        if actual_dims != self.dimension:
            raise EmbeddingDimensionError(
                f"Expected {self.dimension} dimensions, got {actual_dims}. "
                f"Check that '{self.model}' matches the configured EMBEDDING_DIMENSION."
            )

    async def embed(self, text: str) -> List[float]:
        """
        Generate an embedding for a single text.

        Args:
            text: Input text (truncated to max_text_length)

        Returns:
            Embedding vector

        Raises:
            EmbeddingError: If the model fails or returns no values
            EmbeddingDimensionError: If dimensions don't match expected value
        """
        truncated, was_truncated = truncate_text(text or "", self.max_text_length)
        if was_truncated:
            logger.warning(
                f"Text truncated for embedding (original: {len(text)} chars, "
                f"truncated: {len(truncated)} chars)"
            )

        try:
            embedding = await self.embeddings.aembed_query(truncated)
        except Exception as e:
            logger.error(f"Failed to generate embedding: {e}")
            raise EmbeddingError(f"Ollama embedding generation failed: {e}") from e

        if not embedding:
            raise EmbeddingError("Ollama embedding API returned success but no embedding values")

        vector = [float(value) for value in embedding]
        self._verify_embedding_dimensions(vector)
        return vector

    async def verify_dimension(self) -> int:
        """
        Check at startup that the model produces vectors of the configured size.

        Returns:
            The verified dimension

        Raises:
            EmbeddingDimensionError: On mismatch
        """
        vector = await self.embed(DIMENSION_PROBE_TEXT)
        logger.info(f"✓ Embedding model '{self.model}' produces {len(vector)}-dimensional vectors")
        return len(vector)
