"""
Vector Store Adapter

Existence checks, insert-if-absent writes with bounded retry, and cosine
similarity search over a persistent vector index. Records are keyed by the
article URL and never overwritten.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from ..capabilities import IndexRecord, VectorIndexClient
from ..models import Source
from .retry import backoff_delay

logger = logging.getLogger(__name__)


class VectorStoreError(Exception):
    """Raised when the vector index cannot be initialized, written or queried."""
    pass


class VectorStore:
    """
    Adapter between the ingestion/query paths and a vector index client.

    Features:
    - Index bootstrap (create if missing, wait until ready, dimension check)
    - Idempotent upsert: existing ids are skipped, never overwritten
    - Exponential-backoff retries on write failures
    - Similarity results mapped into Source views
    """

    def __init__(
        self,
        client: VectorIndexClient,
        index_name: str = "news-articles",
        dimension: int = 768,
        max_retries: int = 2,
        backoff_base: float = 2.0,
        poll_interval: float = 5.0,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        """
        Initialize the adapter.

        Args:
            client: Vector index backend
            index_name: Name of the index holding article vectors
            dimension: Embedding dimension the index must have
            max_retries: Additional write attempts after the first failure
            backoff_base: Delay before the first retry, doubled each retry
            poll_interval: Seconds between readiness checks for a new index
            sleep: Awaitable sleep used between retries (default: asyncio.sleep)
        """
        self.client = client
        self.index_name = index_name
        self.dimension = dimension
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.poll_interval = poll_interval
        self._sleep = sleep or asyncio.sleep

    async def initialize(self) -> None:
        """
        Ensure the backing index exists with the expected dimension.

        Raises:
            VectorStoreError: If the index cannot be listed, created or described
        """
        logger.info(f"Initializing vector index '{self.index_name}'")
        try:
            existing = await self.client.list_indexes()

            if self.index_name not in existing:
                logger.info(f"Index '{self.index_name}' not found, creating...")
                await self.client.create_index(self.index_name, self.dimension, metric="cosine")

                logger.info(f"Waiting for index '{self.index_name}' to be ready...")
                while True:
                    description = await self.client.describe_index(self.index_name)
                    if description.ready:
                        break
                    await self._sleep(self.poll_interval)
                logger.info(f"Index '{self.index_name}' is ready")
            else:
                logger.info(f"Index '{self.index_name}' already exists")
                description = await self.client.describe_index(self.index_name)
                if description.dimension != self.dimension:
                    logger.warning(
                        f"Index dimension mismatch: expected {self.dimension}, "
                        f"got {description.dimension}"
                    )
        except Exception as e:
            logger.error(f"Vector index initialization failed: {e}")
            raise VectorStoreError(f"Failed to initialize vector index: {e}") from e

        logger.info("Vector index initialization completed successfully")

    async def exists(self, record_id: str) -> bool:
        """
        Check whether a record with this id is stored.

        A lookup error is reported as False: a possible duplicate write
        attempt is preferred over silently dropping an ingestion.
        """
        try:
            records = await self.client.fetch(self.index_name, [record_id])
            return bool(records) and record_id in records
        except Exception as e:
            logger.error(f"Error checking if vector exists: {record_id}: {e}")
            return False

    async def upsert(
        self,
        record_id: str,
        vector: Sequence[float],
        metadata: Dict[str, str]
    ) -> bool:
        """
        Store a record unless one with the same id already exists.

        Args:
            record_id: Record id (the article URL)
            vector: Embedding vector
            metadata: Article fields stored with the vector

        Returns:
            True if written, False if the id was already present

        Raises:
            VectorStoreError: If every write attempt fails
        """
        if await self.exists(record_id):
            logger.info(f"Vector with ID {record_id} already exists, skipping upsert")
            return False

        record = IndexRecord(
            id=record_id,
            values=list(vector),
            metadata={
                'title': metadata.get('title', ''),
                'content': metadata.get('content', ''),
                'url': metadata.get('url', record_id),
                'date': metadata.get('date', ''),
            }
        )

        last_error = None
        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                delay = backoff_delay(attempt, self.backoff_base)
                logger.warning(
                    f"Retrying upsert for ID {record_id} after {delay:.1f}s "
                    f"(attempt {attempt}/{self.max_retries}): {last_error}"
                )
                await self._sleep(delay)

            try:
                await self.client.upsert(self.index_name, [record])
                logger.debug(f"Successfully upserted vector: {record_id}")
                return True
            except Exception as e:
                last_error = e

        raise VectorStoreError(
            f"Failed to upsert vector after {self.max_retries + 1} attempts: {last_error}"
        ) from last_error

    async def query_similar(self, vector: Sequence[float], top_k: int = 1) -> List[Source]:
        """
        Find the stored articles closest to a vector.

        Args:
            vector: Query embedding
            top_k: Number of results to return

        Returns:
            Sources ordered by similarity, content included

        Raises:
            VectorStoreError: If the index query fails
        """
        logger.debug(f"Querying for similar vectors, topK: {top_k}")
        try:
            matches = await self.client.query(self.index_name, vector, top_k)
        except Exception as e:
            logger.error(f"Failed to query similar vectors: {e}")
            raise VectorStoreError(f"Vector index query failed: {e}") from e

        if not matches:
            logger.info("No similar vectors found in query")
            return []

        sources = []
        for match in matches:
            if not match.metadata:
                continue
            metadata = match.metadata
            sources.append(Source(
                title=metadata.get('title') or 'Unknown Title',
                url=metadata.get('url') or '',
                date=metadata.get('date') or '',
                content=metadata.get('content') or ''
            ))

        logger.info(f"Found {len(sources)} similar vectors")
        logger.debug(f"Similarity scores: {[(m.id, round(m.score, 4)) for m in matches]}")
        return sources

    async def get_stats(self) -> Dict:
        """
        Get statistics about the backing index.

        Returns:
            Dictionary with index name, dimension and vector count
        """
        description = await self.client.describe_index(self.index_name)
        stats = {
            'index_name': self.index_name,
            'dimension': description.dimension,
            'metric': description.metric,
        }
        if hasattr(self.client, 'count'):
            stats['total_vectors'] = await self.client.count(self.index_name)
        return stats

    def __repr__(self) -> str:
        return (
            f"VectorStore(index={self.index_name!r}, "
            f"dimension={self.dimension}, "
            f"max_retries={self.max_retries})"
        )
