"""
Intake Sources

Feed URLs into the ingestion coordinator, either from a stream of broker
messages or from a batch file with one URL per line.
"""

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterable, Dict, List, Optional, Union

from tqdm import tqdm

from ..models import IngestionStatus
from .coordinator import IngestionCoordinator

logger = logging.getLogger(__name__)


def parse_message(payload: Union[bytes, str, None]) -> Optional[str]:
    """
    Extract a URL from a transport message.

    JSON envelopes of the form ``{"value": {"url": ...}}`` or ``{"url": ...}``
    are unwrapped; anything else is treated as the URL itself.

    Returns:
        The URL string, or None for an empty payload
    """
    if payload is None:
        return None
    if isinstance(payload, bytes):
        payload = payload.decode('utf-8', errors='replace')

    message = payload.strip()
    if not message:
        return None

    try:
        data = json.loads(message)
    except json.JSONDecodeError:
        logger.warning(f"Could not parse message as JSON, treating as raw URL: {message}")
        return message

    if isinstance(data, dict):
        value = data.get('value')
        if isinstance(value, dict) and value.get('url'):
            return str(value['url']).strip()
        if data.get('url'):
            return str(data['url']).strip()
    elif isinstance(data, str) and data.strip():
        return data.strip()

    return message


class StreamIntake:
    """Consumes a stream of messages and ingests each URL."""

    def __init__(self, coordinator: IngestionCoordinator):
        self.coordinator = coordinator
        self.stats = {
            'received': 0,
            'empty': 0,
            'processed': 0,
            'errors': 0,
        }

    async def handle_message(self, payload: Union[bytes, str, None], offset: Any = None) -> None:
        """
        Process one message; errors are logged, never raised.

        Args:
            payload: Raw message value
            offset: Transport position, used in log lines only
        """
        self.stats['received'] += 1
        start_time = time.time()

        url = parse_message(payload)
        if url is None:
            self.stats['empty'] += 1
            logger.warning(f"Empty message received at offset {offset}, skipping")
            return

        try:
            await self.coordinator.ingest(url)
            self.stats['processed'] += 1
        except Exception as e:
            self.stats['errors'] += 1
            logger.error(f"Error processing message at offset {offset}: {e}", exc_info=True)
            return

        logger.debug(f"Message at offset {offset} processed in {time.time() - start_time:.2f}s")

    async def run(self, messages: AsyncIterable[Union[bytes, str]]) -> Dict[str, int]:
        """
        Consume messages until the stream ends.

        Returns:
            Counters for received, empty, processed and failed messages
        """
        offset = 0
        async for payload in messages:
            await self.handle_message(payload, offset=offset)
            offset += 1

        logger.info(f"Stream intake finished: {self.stats}")
        return dict(self.stats)


class BatchIntake:
    """Ingests a list of URLs with bounded concurrency."""

    def __init__(self, coordinator: IngestionCoordinator, max_concurrency: int = 4):
        self.coordinator = coordinator
        self.max_concurrency = max(1, max_concurrency)

    @staticmethod
    def read_urls(file_path: str) -> List[str]:
        """Read URLs from a file, skipping blank lines and ``#`` comments."""
        urls = []
        with open(file_path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#'):
                    urls.append(line)
        return urls

    async def ingest_urls(self, urls: List[str], show_progress: bool = True) -> Dict[str, Any]:
        """
        Ingest multiple URLs.

        Args:
            urls: List of article URLs
            show_progress: Show progress bar

        Returns:
            Dictionary with batch results:
                - total: int
                - stored: int
                - skipped: int
                - failed: int
                - processing_time: float
                - details: List of individual results
        """
        start_time = time.time()
        semaphore = asyncio.Semaphore(self.max_concurrency)
        progress = tqdm(total=len(urls), desc="Ingesting articles", disable=not show_progress)

        async def ingest_one(url: str) -> Dict[str, Any]:
            async with semaphore:
                try:
                    outcome = await self.coordinator.ingest(url)
                    return outcome.to_dict()
                except Exception as e:
                    logger.error(f"Error ingesting article {url}: {e}")
                    return {'url': url, 'status': 'error', 'success': False, 'error': str(e)}
                finally:
                    progress.update(1)

        try:
            details = await asyncio.gather(*(ingest_one(url) for url in urls))
        finally:
            progress.close()

        stored = sum(1 for d in details if d['status'] == IngestionStatus.STORED)
        skipped = sum(
            1 for d in details
            if d['status'] in (IngestionStatus.DUPLICATE, IngestionStatus.ALREADY_STORED)
        )

        return {
            'total': len(urls),
            'stored': stored,
            'skipped': skipped,
            'failed': len(details) - stored - skipped,
            'processing_time': time.time() - start_time,
            'details': list(details)
        }

    async def ingest_file(self, file_path: str, show_progress: bool = True) -> Dict[str, Any]:
        """
        Ingest articles from a file containing URLs (one per line).

        Returns:
            Dictionary with batch results
        """
        urls = self.read_urls(file_path)
        logger.info(f"Loaded {len(urls)} URLs from {file_path}")
        return await self.ingest_urls(urls, show_progress=show_progress)
