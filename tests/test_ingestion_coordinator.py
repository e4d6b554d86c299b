"""
Test Suite for IngestionCoordinator

All collaborators are mocks; the dedup cache is real.
"""

import pytest
from unittest.mock import AsyncMock, Mock

from news_agent.ingestion.coordinator import IngestionCoordinator, IngestionError
from news_agent.ingestion.dedup_cache import DedupCache
from news_agent.models import Article, IngestionStatus


URL = "https://example.com/news/storm"
ARTICLE = Article(title="Storm hits coast", content="Heavy rain overnight.", url=URL, date="2024-03-01")
VECTOR = [0.1, 0.2, 0.3]


@pytest.fixture
def extractor():
    mock = Mock()
    mock.extract = AsyncMock(return_value=ARTICLE)
    return mock


@pytest.fixture
def embedder():
    mock = Mock()
    mock.embed = AsyncMock(return_value=VECTOR)
    return mock


@pytest.fixture
def vector_store():
    mock = Mock()
    mock.upsert = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def coordinator(extractor, embedder, vector_store):
    return IngestionCoordinator(extractor, embedder, vector_store, DedupCache(max_size=10))


class TestHappyPath:

    @pytest.mark.asyncio
    async def test_new_url_is_stored(self, coordinator, embedder, vector_store):
        result = await coordinator.ingest(URL)

        assert result.status == IngestionStatus.STORED
        assert result.success is True
        assert result.processing_time >= 0
        embedder.embed.assert_awaited_once_with("Storm hits coast. Heavy rain overnight.")
        vector_store.upsert.assert_awaited_once_with(URL, VECTOR, {
            'title': 'Storm hits coast',
            'content': 'Heavy rain overnight.',
            'url': URL,
            'date': '2024-03-01',
        })

    @pytest.mark.asyncio
    async def test_record_already_in_store(self, coordinator, vector_store):
        vector_store.upsert.return_value = False

        result = await coordinator.ingest(URL)

        assert result.status == IngestionStatus.ALREADY_STORED
        assert result.success is True

    def test_embedding_input_format(self):
        assert IngestionCoordinator.build_embedding_input("T", "C") == "T. C"


class TestSkips:

    @pytest.mark.asyncio
    async def test_invalid_url_does_no_work(self, coordinator, extractor):
        result = await coordinator.ingest("what happened today")

        assert result.status == IngestionStatus.INVALID_URL
        extractor.extract.assert_not_called()
        assert len(coordinator.dedup_cache) == 0

    @pytest.mark.asyncio
    async def test_repeated_url_is_skipped(self, coordinator, extractor):
        await coordinator.ingest(URL)
        result = await coordinator.ingest(URL)

        assert result.status == IngestionStatus.DUPLICATE
        assert extractor.extract.await_count == 1

    @pytest.mark.asyncio
    async def test_extraction_failure_stops_pipeline(self, coordinator, extractor, embedder, vector_store):
        extractor.extract.return_value = None

        result = await coordinator.ingest(URL)

        assert result.status == IngestionStatus.EXTRACTION_FAILED
        assert result.success is False
        embedder.embed.assert_not_called()
        vector_store.upsert.assert_not_called()
        assert URL in coordinator.dedup_cache


class TestFailures:

    @pytest.mark.asyncio
    async def test_embedding_failure_skips_storage(self, coordinator, embedder, vector_store):
        embedder.embed.side_effect = RuntimeError("model down")

        with pytest.raises(IngestionError) as exc_info:
            await coordinator.ingest(URL)

        assert exc_info.value.stage == "embedding"
        assert exc_info.value.url == URL
        vector_store.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_storage_failure_raises(self, coordinator, vector_store):
        vector_store.upsert.side_effect = ConnectionError("index down")

        with pytest.raises(IngestionError) as exc_info:
            await coordinator.ingest(URL)

        assert exc_info.value.stage == "storage"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_failed_url_can_be_retried(self, coordinator, vector_store):
        vector_store.upsert.side_effect = [ConnectionError("index down"), True]

        with pytest.raises(IngestionError):
            await coordinator.ingest(URL)
        assert URL not in coordinator.dedup_cache

        result = await coordinator.ingest(URL)
        assert result.status == IngestionStatus.STORED
