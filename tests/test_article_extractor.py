"""
Test Suite for ArticleExtractor

Network access is replaced by patching _fetch_html; the structuring
capability is a scripted fake.
"""

import json
import pytest
from unittest.mock import AsyncMock, patch

from news_agent.ingestion.article_extractor import ArticleExtractor
from news_agent.models import Article, UNTITLED_ARTICLE


URL = "https://example.com/news/storm"


class FakeStructurer:
    """Returns a canned response and records what it was given."""

    def __init__(self, response="", error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def structure(self, html, url):
        self.calls.append((html, url))
        if self.error:
            raise self.error
        return self.response


def structured(**fields):
    return json.dumps(fields)


# ============================================================================
# Structuring
# ============================================================================

class TestStructureHtml:

    @pytest.mark.asyncio
    async def test_complete_response_builds_article(self):
        structurer = FakeStructurer(structured(
            title="Storm hits coast", content="Heavy rain overnight.", date="2024-03-01"
        ))
        extractor = ArticleExtractor(structurer)

        article = await extractor.structure_html("<html>storm</html>", URL)

        assert article == Article(
            title="Storm hits coast",
            content="Heavy rain overnight.",
            url=URL,
            date="2024-03-01",
        )

    @pytest.mark.asyncio
    async def test_missing_fields_are_defaulted(self, caplog):
        extractor = ArticleExtractor(FakeStructurer(structured(content="Body only")))

        with caplog.at_level("WARNING"):
            article = await extractor.structure_html("<html/>", URL)

        assert article.title == UNTITLED_ARTICLE
        assert article.date == ""
        assert article.content == "Body only"
        assert "missing expected fields" in caplog.text

    @pytest.mark.asyncio
    async def test_null_and_non_string_values_become_text(self):
        extractor = ArticleExtractor(FakeStructurer(structured(
            title=None, content=12345, date=None
        )))

        article = await extractor.structure_html("<html/>", URL)

        assert article.title == UNTITLED_ARTICLE
        assert article.content == "12345"
        assert article.date == ""

    @pytest.mark.asyncio
    async def test_url_comes_from_request_not_response(self):
        extractor = ArticleExtractor(FakeStructurer(structured(
            title="T", content="C", date="", url="https://elsewhere.example/"
        )))

        article = await extractor.structure_html("<html/>", URL)

        assert article.url == URL

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", ["", "   ", "not json", "[1, 2]", '"just a string"'])
    async def test_unusable_response_is_failure(self, response):
        extractor = ArticleExtractor(FakeStructurer(response))

        assert await extractor.structure_html("<html/>", URL) is None

    @pytest.mark.asyncio
    async def test_structurer_exception_is_failure(self):
        extractor = ArticleExtractor(FakeStructurer(error=RuntimeError("model offline")))

        assert await extractor.structure_html("<html/>", URL) is None

    @pytest.mark.asyncio
    async def test_html_is_prefix_truncated(self):
        structurer = FakeStructurer(structured(title="T", content="C", date=""))
        extractor = ArticleExtractor(structurer, max_html_length=10)

        await extractor.structure_html("0123456789ABCDEF", URL)

        assert structurer.calls == [("0123456789", URL)]


# ============================================================================
# Full extraction
# ============================================================================

class TestExtract:

    @pytest.mark.asyncio
    async def test_successful_extraction_updates_stats(self):
        extractor = ArticleExtractor(FakeStructurer(structured(
            title="Title", content="Content", date="2024-01-01"
        )))

        with patch.object(extractor, '_fetch_html', AsyncMock(return_value="<html>x</html>")):
            article = await extractor.extract(URL)

        assert article.title == "Title"
        assert extractor.get_stats() == {
            'total_extracted': 1,
            'total_failed': 0,
            'total_attempts': 1,
        }

    @pytest.mark.asyncio
    async def test_invalid_url_skips_fetch(self):
        extractor = ArticleExtractor(FakeStructurer())
        fetch = AsyncMock()

        with patch.object(extractor, '_fetch_html', fetch):
            assert await extractor.extract("not a url") is None

        fetch.assert_not_called()
        assert extractor.get_stats()['total_failed'] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("html", [None, "", "   \n"])
    async def test_empty_fetch_skips_structuring(self, html):
        structurer = FakeStructurer(structured(title="T", content="C", date=""))
        extractor = ArticleExtractor(structurer)

        with patch.object(extractor, '_fetch_html', AsyncMock(return_value=html)):
            assert await extractor.extract(URL) is None

        assert structurer.calls == []
        assert extractor.get_stats()['total_failed'] == 1

    @pytest.mark.asyncio
    async def test_structuring_failure_counts_as_failed(self):
        extractor = ArticleExtractor(FakeStructurer("garbage"))

        with patch.object(extractor, '_fetch_html', AsyncMock(return_value="<html/>")):
            assert await extractor.extract(URL) is None

        stats = extractor.get_stats()
        assert stats['total_attempts'] == 1
        assert stats['total_failed'] == 1


class TestUserAgentRotation:

    def test_rotates_through_agents(self):
        extractor = ArticleExtractor(FakeStructurer())
        seen = [extractor._get_user_agent() for _ in range(len(extractor.user_agents) + 1)]

        assert seen[0] == seen[-1]
        assert len(set(seen)) == len(extractor.user_agents)
