"""
Ingestion Coordinator

Runs a single URL through extract → embed → upsert, with short-term
deduplication in front of the pipeline.
"""

import logging
import time
from typing import Optional

from ..capabilities import EmbeddingCapability
from ..models import IngestionResult, IngestionStatus
from ..storage.vector_store import VectorStore
from .article_extractor import ArticleExtractor
from .dedup_cache import DedupCache
from .url_validator import is_url

logger = logging.getLogger(__name__)


class IngestionError(Exception):
    """Raised when a pipeline stage after extraction fails for a URL."""

    def __init__(self, stage: str, url: str, cause: Exception):
        self.stage = stage
        self.url = url
        super().__init__(f"{stage} stage failed for {url}: {cause}")


class IngestionCoordinator:
    """
    Orchestrates ingestion of one URL at a time.

    Embedding and storage failures propagate as IngestionError so the
    intake transport can decide whether to retry or acknowledge.
    """

    def __init__(
        self,
        extractor: ArticleExtractor,
        embedder: EmbeddingCapability,
        vector_store: VectorStore,
        dedup_cache: Optional[DedupCache] = None
    ):
        """
        Initialize the coordinator.

        Args:
            extractor: Content extractor
            embedder: Embedding capability
            vector_store: Vector store adapter
            dedup_cache: Recently-seen URL cache (default: a fresh DedupCache)
        """
        self.extractor = extractor
        self.embedder = embedder
        self.vector_store = vector_store
        self.dedup_cache = dedup_cache if dedup_cache is not None else DedupCache()

    @staticmethod
    def build_embedding_input(title: str, content: str) -> str:
        return f"{title}. {content}"

    async def ingest(self, url: str) -> IngestionResult:
        """
        Ingest a single article URL.

        Args:
            url: Article URL

        Returns:
            IngestionResult describing what happened

        Raises:
            IngestionError: If embedding or storage fails
        """
        start_time = time.time()

        def result(status: str) -> IngestionResult:
            return IngestionResult(url=url, status=status, processing_time=time.time() - start_time)

        if not is_url(url):
            logger.error(f"Invalid URL provided for ingestion: {url!r}")
            return result(IngestionStatus.INVALID_URL)

        if not self.dedup_cache.add_if_absent(url):
            logger.info(f"Skipping recently processed URL: {url}")
            return result(IngestionStatus.DUPLICATE)

        try:
            status = await self._run_pipeline(url)
        except Exception:
            # Let a redelivery of this URL try again
            self.dedup_cache.discard(url)
            raise

        outcome = result(status)
        logger.info(f"Ingestion of {url} finished with status '{status}' in {outcome.processing_time:.2f}s")
        return outcome

    async def _run_pipeline(self, url: str) -> str:
        article = await self.extractor.extract(url)
        if article is None:
            return IngestionStatus.EXTRACTION_FAILED

        try:
            vector = await self.embedder.embed(
                self.build_embedding_input(article.title, article.content)
            )
        except Exception as e:
            logger.error(f"Failed to embed article {url}: {e}")
            raise IngestionError("embedding", url, e) from e

        try:
            written = await self.vector_store.upsert(url, vector, article.to_metadata())
        except Exception as e:
            logger.error(f"Failed to store vector for URL {url}: {e}")
            raise IngestionError("storage", url, e) from e

        return IngestionStatus.STORED if written else IngestionStatus.ALREADY_STORED
