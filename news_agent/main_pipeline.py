"""
Main Pipeline System

Wires configuration, the Ollama and FAISS backends, and the core components
into a single system object used by the CLI.

This is the central integration point that coordinates:
- Startup checks (vector index bootstrap, embedding dimension)
- URL ingestion (single, batch, stream)
- Query answering
"""

import logging
import os
from typing import Any, AsyncIterable, Dict, List, Optional, Union

from .config import Config, get_config
from .embeddings.ollama_service import OllamaEmbeddingService
from .ingestion.article_extractor import ArticleExtractor
from .ingestion.coordinator import IngestionCoordinator
from .ingestion.dedup_cache import DedupCache
from .ingestion.intake import BatchIntake, StreamIntake
from .llm.ollama_chat import OllamaChatService
from .models import IngestionResult, QueryResponse
from .query.answer_assembler import AnswerAssembler
from .query.router import QueryRouter
from .storage.faiss_index import FaissIndexClient
from .storage.vector_store import VectorStore

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class NewsAgentSystem:
    """
    Main system object that owns every component.

    Components can be injected for tests; anything omitted is built from the
    configuration.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        chat_service: Optional[OllamaChatService] = None,
        embedding_service: Optional[OllamaEmbeddingService] = None,
        vector_store: Optional[VectorStore] = None,
        extractor: Optional[ArticleExtractor] = None,
        dedup_cache: Optional[DedupCache] = None,
        setup_logging: bool = True
    ):
        """
        Initialize the system.

        Args:
            config: Configuration (default: global config)
            chat_service: Structuring and generation capability
            embedding_service: Embedding capability
            vector_store: Vector store adapter
            extractor: Content extractor
            dedup_cache: Recently-seen URL cache for ingestion
            setup_logging: Attach console and file handlers to the package logger
        """
        self.config = config or get_config()

        if setup_logging:
            self._setup_logging()
        self.logger = logging.getLogger(__name__)

        self.chat_service = chat_service or OllamaChatService(
            model=self.config.llm_model,
            base_url=self.config.ollama_base_url,
            temperature=self.config.llm_temperature
        )
        self.embedding_service = embedding_service or OllamaEmbeddingService(
            model=self.config.embedding_model,
            base_url=self.config.ollama_base_url,
            dimension=self.config.embedding_dimension,
            max_text_length=self.config.max_embed_text_length,
            timeout=self.config.ollama_timeout
        )
        self.vector_store = vector_store or VectorStore(
            client=FaissIndexClient(self.config.index_dir),
            index_name=self.config.index_name,
            dimension=self.config.embedding_dimension,
            max_retries=self.config.upsert_max_retries,
            backoff_base=self.config.upsert_backoff_base,
            poll_interval=self.config.index_poll_interval
        )
        self.extractor = extractor or ArticleExtractor(
            structurer=self.chat_service,
            timeout=self.config.fetch_timeout,
            max_html_length=self.config.max_html_length
        )

        self.coordinator = IngestionCoordinator(
            extractor=self.extractor,
            embedder=self.embedding_service,
            vector_store=self.vector_store,
            dedup_cache=dedup_cache if dedup_cache is not None else DedupCache(
                max_size=self.config.dedup_cache_size,
                expiry_seconds=self.config.dedup_expiry_seconds
            )
        )
        self.router = QueryRouter(
            extractor=self.extractor,
            embedder=self.embedding_service,
            vector_store=self.vector_store,
            assembler=AnswerAssembler(self.chat_service),
            top_k=self.config.top_k_default
        )

        self._started = False
        self.logger.info("NewsAgentSystem initialized successfully")

    def _setup_logging(self):
        """Configure console and file logging for the package."""
        package_logger = logging.getLogger('news_agent')
        package_logger.setLevel(self.config.log_level)

        if package_logger.handlers:
            return

        formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

        os.makedirs(self.config.log_dir, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(self.config.log_dir, 'news_agent.log'))
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    async def start(self) -> None:
        """
        Run startup checks once.

        Raises:
            VectorStoreError: If the vector index cannot be prepared
            EmbeddingDimensionError: If the embedding model's dimension is wrong
        """
        if self._started:
            return

        await self.vector_store.initialize()
        await self.embedding_service.verify_dimension()
        self._started = True
        self.logger.info("Application startup completed")

    async def close(self) -> None:
        await self.extractor.close()

    async def __aenter__(self) -> "NewsAgentSystem":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def ingest_url(self, url: str) -> IngestionResult:
        """Ingest a single article URL."""
        return await self.coordinator.ingest(url)

    async def ingest_batch(self, urls: List[str], show_progress: bool = True) -> Dict[str, Any]:
        intake = BatchIntake(self.coordinator, max_concurrency=self.config.max_workers)
        return await intake.ingest_urls(urls, show_progress=show_progress)

    async def ingest_from_file(self, file_path: str, show_progress: bool = True) -> Dict[str, Any]:
        intake = BatchIntake(self.coordinator, max_concurrency=self.config.max_workers)
        return await intake.ingest_file(file_path, show_progress=show_progress)

    async def consume(self, messages: AsyncIterable[Union[bytes, str]]) -> Dict[str, int]:
        """Ingest URLs from a stream of transport messages."""
        return await StreamIntake(self.coordinator).run(messages)

    async def ask(self, query: str) -> QueryResponse:
        """Answer a URL or free-text query."""
        return await self.router.handle_query(query)

    async def get_stats(self) -> Dict[str, Any]:
        """
        Get system statistics.

        Returns:
            Dictionary with vector index, extraction and dedup cache figures
        """
        return {
            'vector_store_stats': await self.vector_store.get_stats(),
            'extraction_stats': self.extractor.get_stats(),
            'dedup_cache_size': len(self.coordinator.dedup_cache),
        }
