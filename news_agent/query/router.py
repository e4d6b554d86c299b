"""
Query Router

Classifies a query as a URL to analyze or a question for the knowledge base
and dispatches it. Every branch ends in a well-formed QueryResponse; no
exception leaves ``handle_query``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Union

from ..capabilities import EmbeddingCapability
from ..ingestion.article_extractor import ArticleExtractor
from ..ingestion.url_validator import is_url
from ..models import QueryResponse
from ..storage.vector_store import VectorStore
from ..utils.text import shorten_for_log
from .answer_assembler import AnswerAssembler

logger = logging.getLogger(__name__)

COULD_NOT_PROCESS_ANSWER = (
    "I couldn't process this URL. It may be inaccessible or doesn't contain extractable content."
)
EMBEDDING_ERROR_ANSWER = "Encountered an error while processing your query."
SEARCH_ERROR_ANSWER = "Couldn't search our knowledge base at the moment."
NO_INFORMATION_ANSWER = "No information related to the query in our knowledge base."
UNEXPECTED_ERROR_ANSWER = "Sorry, I encountered an unexpected error while processing your request."


class QueryValidationError(ValueError):
    """Raised when a query payload is malformed."""
    pass


@dataclass(frozen=True)
class UrlMode:
    url: str


@dataclass(frozen=True)
class KnowledgeMode:
    query: str


QueryMode = Union[UrlMode, KnowledgeMode]


def classify(query: str) -> QueryMode:
    """Decide whether a query is a URL to analyze or a knowledge-base question."""
    if is_url(query):
        return UrlMode(url=query)
    return KnowledgeMode(query=query)


def validate_query_payload(payload: Any) -> str:
    """
    Validate a ``{"query": str}`` payload.

    Returns:
        The trimmed query

    Raises:
        QueryValidationError: If the query is missing, not a string, or blank
    """
    if not isinstance(payload, dict):
        raise QueryValidationError("Invalid request body. Expected a JSON object.")

    query = payload.get('query')
    if not isinstance(query, str) or not query.strip():
        raise QueryValidationError("Invalid request body. Query must be a non-empty string.")

    return query.strip()


class QueryRouter:
    """Dispatches queries to URL analysis or knowledge-base retrieval."""

    def __init__(
        self,
        extractor: ArticleExtractor,
        embedder: EmbeddingCapability,
        vector_store: VectorStore,
        assembler: AnswerAssembler,
        top_k: int = 1
    ):
        """
        Initialize the router.

        Args:
            extractor: Content extractor for URL queries
            embedder: Embedding capability for knowledge queries
            vector_store: Vector store adapter for retrieval
            assembler: Answer assembler
            top_k: Number of sources retrieved per knowledge query
        """
        self.extractor = extractor
        self.embedder = embedder
        self.vector_store = vector_store
        self.assembler = assembler
        self.top_k = top_k

    async def handle_query(self, query: str) -> QueryResponse:
        """
        Answer a query.

        Args:
            query: A URL or a free-text question

        Returns:
            QueryResponse with public sources only
        """
        logger.info(f'Handling query: "{shorten_for_log(query, 100)}"')

        try:
            mode = classify(query)
            if isinstance(mode, UrlMode):
                logger.info("Query is being treated as a URL")
                return await self.handle_url_query(mode.url)

            logger.info("Query is being treated as a knowledge base query")
            return await self.handle_knowledge_query(mode.query)
        except Exception as e:
            logger.error(f"Unhandled error in query handling: {e}", exc_info=True)
            return QueryResponse(answer=UNEXPECTED_ERROR_ANSWER, sources=[])

    async def handle_url_query(self, url: str) -> QueryResponse:
        article = await self.extractor.extract(url)
        if article is None:
            logger.warning(f"Failed to process URL: {url}")
            return QueryResponse(answer=COULD_NOT_PROCESS_ANSWER, sources=[])

        return await self.assembler.summarize_article(article)

    async def handle_knowledge_query(self, query: str) -> QueryResponse:
        try:
            vector = await self.embedder.embed(query)
        except Exception as e:
            logger.error(f"Failed to generate query embedding: {e}")
            return QueryResponse(answer=EMBEDDING_ERROR_ANSWER, sources=[])

        try:
            sources = await self.vector_store.query_similar(vector, top_k=self.top_k)
        except Exception as e:
            logger.error(f"Failed to search knowledge base: {e}")
            return QueryResponse(answer=SEARCH_ERROR_ANSWER, sources=[])

        if not sources:
            logger.info("No relevant sources found for query")
            return QueryResponse(answer=NO_INFORMATION_ANSWER, sources=[])

        logger.debug(f"Found {len(sources)} relevant sources for query")
        return await self.assembler.answer_from_sources(query, sources)
