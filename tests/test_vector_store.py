"""
Test Suite for the Vector Store

Covers:
- VectorStore against an in-memory fake client (bootstrap, idempotent
  upsert, retry with backoff, query mapping)
- FaissIndexClient persistence and cosine search on a temporary directory
- Backoff delay policy
"""

import os
import pytest
from unittest.mock import AsyncMock, patch

from news_agent.capabilities import IndexDescription, IndexMatch, IndexRecord
from news_agent.models import Source
from news_agent.storage.faiss_index import FaissIndexClient
from news_agent.storage.retry import backoff_delay
from news_agent.storage.vector_store import VectorStore, VectorStoreError


URL = "https://example.com/a"


class FakeIndexClient:
    """In-memory index client with scriptable failures."""

    def __init__(self, dimension=4, ready_after=1):
        self.indexes = {}
        self.dimension = dimension
        self.ready_after = ready_after
        self.describe_calls = 0
        self.upsert_failures = 0
        self.upsert_calls = 0
        self.fetch_error = None
        self.query_error = None
        self.query_result = None

    async def list_indexes(self):
        return list(self.indexes)

    async def create_index(self, name, dimension, metric="cosine"):
        self.indexes[name] = {}
        self.dimension = dimension

    async def describe_index(self, name):
        self.describe_calls += 1
        return IndexDescription(
            name=name,
            dimension=self.dimension,
            ready=self.describe_calls >= self.ready_after
        )

    async def fetch(self, name, ids):
        if self.fetch_error:
            raise self.fetch_error
        return {i: self.indexes[name][i] for i in ids if i in self.indexes[name]}

    async def upsert(self, name, records):
        self.upsert_calls += 1
        if self.upsert_failures:
            self.upsert_failures -= 1
            raise ConnectionError(f"index unavailable (attempt {self.upsert_calls})")
        for record in records:
            self.indexes[name][record.id] = record

    async def query(self, name, vector, top_k):
        if self.query_error:
            raise self.query_error
        return self.query_result or []


@pytest.fixture
def client():
    fake = FakeIndexClient()
    fake.indexes["news-articles"] = {}
    return fake


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def store(client, sleep):
    return VectorStore(client, dimension=4, sleep=sleep)


METADATA = {'title': 'Title', 'content': 'Body', 'url': URL, 'date': '2024-01-01'}


# ============================================================================
# Initialization
# ============================================================================

class TestInitialize:

    @pytest.mark.asyncio
    async def test_creates_missing_index_and_waits_until_ready(self, sleep):
        client = FakeIndexClient(ready_after=3)
        store = VectorStore(client, dimension=4, poll_interval=5.0, sleep=sleep)

        await store.initialize()

        assert "news-articles" in client.indexes
        assert client.describe_calls == 3
        assert sleep.await_count == 2
        sleep.assert_awaited_with(5.0)

    @pytest.mark.asyncio
    async def test_existing_index_with_other_dimension_only_warns(self, client, sleep, caplog):
        client.dimension = 8
        store = VectorStore(client, dimension=4, sleep=sleep)

        with caplog.at_level("WARNING"):
            await store.initialize()

        assert "dimension mismatch" in caplog.text

    @pytest.mark.asyncio
    async def test_backend_failure_is_wrapped(self, sleep):
        client = FakeIndexClient()
        client.list_indexes = AsyncMock(side_effect=ConnectionError("down"))
        store = VectorStore(client, sleep=sleep)

        with pytest.raises(VectorStoreError):
            await store.initialize()


# ============================================================================
# Upsert
# ============================================================================

class TestUpsert:

    @pytest.mark.asyncio
    async def test_new_record_is_written(self, store, client):
        assert await store.upsert(URL, [0.1, 0.2, 0.3, 0.4], METADATA) is True

        record = client.indexes["news-articles"][URL]
        assert record.metadata == METADATA
        assert await store.exists(URL) is True

    @pytest.mark.asyncio
    async def test_existing_record_is_never_overwritten(self, store, client):
        await store.upsert(URL, [0.1, 0.2, 0.3, 0.4], METADATA)

        written = await store.upsert(URL, [9, 9, 9, 9], dict(METADATA, title="Changed"))

        assert written is False
        assert client.upsert_calls == 1
        assert client.indexes["news-articles"][URL].metadata['title'] == 'Title'

    @pytest.mark.asyncio
    async def test_transient_failures_retry_with_backoff(self, store, client, sleep):
        client.upsert_failures = 2

        assert await store.upsert(URL, [1, 0, 0, 0], METADATA) is True

        assert client.upsert_calls == 3
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise(self, store, client, sleep):
        client.upsert_failures = 10

        with pytest.raises(VectorStoreError) as exc_info:
            await store.upsert(URL, [1, 0, 0, 0], METADATA)

        assert client.upsert_calls == 3
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert str(exc_info.value.__cause__) == "index unavailable (attempt 3)"
        assert "attempt 3" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self, client, sleep):
        client.upsert_failures = 1
        store = VectorStore(client, dimension=4, max_retries=0, sleep=sleep)

        with pytest.raises(VectorStoreError):
            await store.upsert(URL, [1, 0, 0, 0], METADATA)

        assert client.upsert_calls == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exists_lookup_error_reports_absent(self, store, client):
        client.fetch_error = TimeoutError("slow")

        assert await store.exists(URL) is False


# ============================================================================
# Query
# ============================================================================

class TestQuerySimilar:

    @pytest.mark.asyncio
    async def test_matches_map_to_sources(self, store, client):
        client.query_result = [
            IndexMatch(id=URL, score=0.9, metadata=METADATA),
            IndexMatch(id="https://example.com/b", score=0.5, metadata={'content': 'x'}),
        ]

        sources = await store.query_similar([1, 0, 0, 0], top_k=2)

        assert sources[0] == Source(title='Title', url=URL, date='2024-01-01', content='Body')
        assert sources[1].title == 'Unknown Title'
        assert sources[1].url == ''

    @pytest.mark.asyncio
    async def test_matches_without_metadata_are_skipped(self, store, client):
        client.query_result = [IndexMatch(id=URL, score=0.9, metadata={})]

        assert await store.query_similar([1, 0, 0, 0]) == []

    @pytest.mark.asyncio
    async def test_query_failure_is_wrapped(self, store, client):
        client.query_error = RuntimeError("boom")

        with pytest.raises(VectorStoreError):
            await store.query_similar([1, 0, 0, 0])


class TestBackoffDelay:

    def test_doubles_each_retry(self):
        assert [backoff_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_custom_base(self):
        assert backoff_delay(3, base=0.5) == 2.0

    def test_attempt_must_be_positive(self):
        with pytest.raises(ValueError):
            backoff_delay(0)


# ============================================================================
# FAISS backend
# ============================================================================

class TestFaissIndexClient:

    @pytest.fixture
    def faiss_client(self, tmp_path):
        return FaissIndexClient(str(tmp_path))

    @pytest.mark.asyncio
    async def test_create_and_describe(self, faiss_client, tmp_path):
        await faiss_client.create_index("articles", 4)

        description = await faiss_client.describe_index("articles")

        assert description.dimension == 4
        assert description.metric == "cosine"
        assert description.ready is True
        assert await faiss_client.list_indexes() == ["articles"]
        assert os.path.exists(tmp_path / "articles.index")

    @pytest.mark.asyncio
    async def test_create_twice_rejected(self, faiss_client):
        await faiss_client.create_index("articles", 4)

        with pytest.raises(ValueError):
            await faiss_client.create_index("articles", 4)

    @pytest.mark.asyncio
    async def test_describe_missing_index(self, faiss_client):
        with pytest.raises(KeyError):
            await faiss_client.describe_index("missing")

    @pytest.mark.asyncio
    async def test_cosine_ranking(self, faiss_client):
        await faiss_client.create_index("articles", 4)
        await faiss_client.upsert("articles", [
            IndexRecord(id="https://example.com/x", values=[1, 0, 0, 0], metadata={'title': 'X'}),
            IndexRecord(id="https://example.com/y", values=[0, 1, 0, 0], metadata={'title': 'Y'}),
        ])

        matches = await faiss_client.query("articles", [10, 1, 0, 0], top_k=2)

        assert [m.id for m in matches] == ["https://example.com/x", "https://example.com/y"]
        assert matches[0].metadata == {'title': 'X'}
        assert matches[0].score == pytest.approx(10 / (101 ** 0.5), rel=1e-5)

    @pytest.mark.asyncio
    async def test_top_k_capped_and_empty_index(self, faiss_client):
        await faiss_client.create_index("articles", 4)

        assert await faiss_client.query("articles", [1, 0, 0, 0], top_k=5) == []

        await faiss_client.upsert("articles", [
            IndexRecord(id=URL, values=[1, 0, 0, 0], metadata={'title': 'A'}),
        ])
        assert len(await faiss_client.query("articles", [1, 0, 0, 0], top_k=5)) == 1
        assert await faiss_client.query("articles", [1, 0, 0, 0], top_k=0) == []

    @pytest.mark.asyncio
    async def test_fetch_returns_only_present_ids(self, faiss_client):
        await faiss_client.create_index("articles", 4)
        await faiss_client.upsert("articles", [
            IndexRecord(id=URL, values=[0, 0, 3, 4], metadata={'title': 'A'}),
        ])

        records = await faiss_client.fetch("articles", [URL, "https://example.com/none"])

        assert list(records) == [URL]
        assert records[URL].values == pytest.approx([0, 0, 0.6, 0.8])

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected(self, faiss_client):
        await faiss_client.create_index("articles", 4)

        with pytest.raises(ValueError, match="dimension"):
            await faiss_client.upsert("articles", [IndexRecord(id=URL, values=[1, 0])])

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, faiss_client, tmp_path):
        await faiss_client.create_index("articles", 4)
        await faiss_client.upsert("articles", [
            IndexRecord(id=URL, values=[1, 0, 0, 0], metadata={'title': 'A', 'url': URL}),
        ])

        reopened = FaissIndexClient(str(tmp_path))

        assert await reopened.count("articles") == 1
        matches = await reopened.query("articles", [1, 0, 0, 0], top_k=1)
        assert matches[0].id == URL
        assert matches[0].metadata['title'] == 'A'

    @pytest.mark.asyncio
    async def test_vector_store_over_faiss(self, faiss_client):
        store = VectorStore(faiss_client, index_name="articles", dimension=4)
        await store.initialize()

        assert await store.upsert(URL, [1, 0, 0, 0], METADATA) is True
        assert await store.upsert(URL, [0, 1, 0, 0], METADATA) is False

        sources = await store.query_similar([1, 0, 0, 0], top_k=1)
        assert sources[0].url == URL
        assert (await store.get_stats())['total_vectors'] == 1

    @pytest.mark.asyncio
    async def test_failed_save_leaves_record_absent(self, faiss_client, tmp_path):
        store = VectorStore(faiss_client, index_name="articles", dimension=4,
                            max_retries=1, sleep=AsyncMock())
        await store.initialize()

        with patch.object(faiss_client, '_save', side_effect=OSError("disk full")):
            with pytest.raises(VectorStoreError):
                await store.upsert(URL, [1, 0, 0, 0], METADATA)

        assert await store.exists(URL) is False
        assert await faiss_client.count("articles") == 0
        assert await faiss_client.query("articles", [1, 0, 0, 0], top_k=1) == []

        # A redelivery writes the record for real
        assert await store.upsert(URL, [1, 0, 0, 0], METADATA) is True
        reopened = FaissIndexClient(str(tmp_path))
        assert await reopened.count("articles") == 1
        assert (await reopened.fetch("articles", [URL]))[URL].metadata['url'] == URL
