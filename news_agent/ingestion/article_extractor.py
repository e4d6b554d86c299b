"""
Article Extractor Module

Fetches a news page and turns it into a structured Article with the help of
an LLM structuring capability. Extraction failures never raise: they are
logged and reported as None.
"""

import asyncio
import json
import logging
import threading
from typing import Dict, Optional

import aiohttp

from ..capabilities import StructuringCapability
from ..models import Article, UNTITLED_ARTICLE
from ..utils.text import truncate_text
from .url_validator import is_url

logger = logging.getLogger(__name__)

EXPECTED_FIELDS = ('title', 'content', 'date')


class ArticleExtractor:
    """
    Extracts article content from news URLs.

    Features:
    - Async fetching with User-Agent rotation
    - Prefix truncation of raw HTML before structuring
    - Strict JSON parsing of the structuring response
    - Defaulting of missing fields with data-quality warnings
    - Thread-safe extraction statistics
    """

    def __init__(
        self,
        structurer: StructuringCapability,
        timeout: int = 30,
        max_html_length: int = 120000,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize the article extractor.

        Args:
            structurer: Capability that converts HTML into a JSON object string
            timeout: Request timeout in seconds (default: 30)
            max_html_length: Maximum HTML characters passed to the structurer
            session: Shared aiohttp session (created lazily when omitted)
        """
        self.structurer = structurer
        self.timeout = timeout
        self.max_html_length = max_html_length
        self._session = session
        self._owns_session = session is None

        # User agents for rotation
        self.user_agents = [
            'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
            'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
            'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
        ]
        self.current_user_agent_idx = 0

        # Statistics tracking
        self._stats = {
            'total_extracted': 0,
            'total_failed': 0,
            'total_attempts': 0
        }
        self._stats_lock = threading.Lock()

        logger.info(f"ArticleExtractor initialized with timeout={self.timeout}s, max_html_length={self.max_html_length}")

    def _get_user_agent(self) -> str:
        """Get next user agent from rotation."""
        user_agent = self.user_agents[self.current_user_agent_idx]
        self.current_user_agent_idx = (self.current_user_agent_idx + 1) % len(self.user_agents)
        return user_agent

    def _record(self, success: bool) -> None:
        with self._stats_lock:
            self._stats['total_attempts'] += 1
            if success:
                self._stats['total_extracted'] += 1
            else:
                self._stats['total_failed'] += 1

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this extractor created it."""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _fetch_html(self, url: str) -> Optional[str]:
        """
        Fetch raw page content.

        Returns:
            Response body, or None on non-2xx status or network error
        """
        session = await self._get_session()
        headers = {'User-Agent': self._get_user_agent()}

        try:
            async with session.get(url, headers=headers, allow_redirects=True) as response:
                if not 200 <= response.status < 300:
                    logger.warning(f"Failed to fetch URL {url}: HTTP {response.status}")
                    return None
                return await response.text(errors='replace')
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error fetching URL {url}: {e}")
            return None

    def _parse_structured(self, response_text: str, url: str) -> Optional[Article]:
        """
        Parse the structuring response into an Article.

        Unparseable output is a failure; missing fields are defaulted.
        """
        try:
            data = json.loads(response_text)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Failed to parse structuring response for {url}: {e}")
            logger.debug(f"Raw structuring response: {response_text!r}")
            return None

        if not isinstance(data, dict):
            logger.error(f"Structuring response for {url} is not a JSON object: {type(data).__name__}")
            return None

        missing = [key for key in EXPECTED_FIELDS if key not in data]
        if missing:
            logger.warning(
                f"Structured data for {url} is missing expected fields {missing}; using defaults"
            )

        return Article(
            title=self._as_text(data.get('title')) or UNTITLED_ARTICLE,
            content=self._as_text(data.get('content')),
            date=self._as_text(data.get('date')),
            url=url
        )

    @staticmethod
    def _as_text(value) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return str(value).strip()

    async def structure_html(self, html: str, url: str) -> Optional[Article]:
        """
        Run the structuring capability on (truncated) HTML.

        Args:
            html: Raw page content
            url: Source URL recorded on the Article

        Returns:
            Article, or None if structuring failed
        """
        truncated_html, was_truncated = truncate_text(html, self.max_html_length)
        if was_truncated:
            logger.debug(f"Truncated HTML for {url} from {len(html)} to {len(truncated_html)} chars")

        try:
            response_text = await self.structurer.structure(truncated_html, url)
        except Exception as e:
            logger.error(f"Structuring call failed for {url}: {e}")
            return None

        if not response_text or not response_text.strip():
            logger.warning(f"Structuring returned an empty response for {url}")
            return None

        return self._parse_structured(response_text, url)

    async def extract(self, url: str) -> Optional[Article]:
        """
        Extract an article from a single URL.

        Args:
            url: Article URL

        Returns:
            Extracted Article or None if failed
        """
        if not is_url(url):
            logger.error(f"Invalid URL provided for extraction: {url!r}")
            self._record(False)
            return None

        logger.info(f"Extracting article from: {url}")

        html = await self._fetch_html(url)
        if not html or not html.strip():
            logger.warning(f"No content fetched from URL: {url}")
            self._record(False)
            return None

        article = await self.structure_html(html, url)
        if article is None:
            logger.warning(f"Failed to extract article from URL: {url}")
            self._record(False)
            return None

        self._record(True)
        logger.info(f"Successfully extracted article from {url} (length: {len(article.content)} chars)")
        return article

    def get_stats(self) -> Dict[str, int]:
        """
        Get extraction statistics.

        Returns:
            Dictionary with attempt, success and failure counts
        """
        with self._stats_lock:
            return dict(self._stats)
